# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from collections.abc import AsyncIterable, Iterable, Iterator
from enum import Enum
from typing import Protocol, runtime_checkable


class FieldPosition(Enum):
    """Where a field travels in an HTTP message. Only headers are ever signed."""

    HEADER = 0
    """Sent before the body (RFC 9110 Section 6.3)."""

    TRAILER = 1
    """Sent after the body (RFC 9110 Section 6.5)."""


class Field(Protocol):
    """One named header or trailer with all of its values.

    The name keeps the casing it was given; lookups ignore case.
    """

    name: str
    values: list[str]
    kind: FieldPosition = FieldPosition.HEADER

    def add(self, value: str) -> None: ...

    def set(self, values: list[str]) -> None: ...

    def as_string(self, delimiter: str = ",") -> str:
        """All values on one line, separated by ``delimiter``."""
        ...


class Fields(Protocol):
    """Fields of a request, looked up by case-insensitive name."""

    def set_field(self, field: Field) -> None:
        """Add ``field``, replacing any field with the same name."""
        ...

    def get(self, key: str, default: Field | None = None) -> Field | None: ...

    def __setitem__(self, name: str, field: Field) -> None: ...

    def __getitem__(self, name: str) -> Field: ...

    def __delitem__(self, name: str) -> None: ...

    def __contains__(self, name: str) -> bool: ...

    def __iter__(self) -> Iterator[Field]: ...

    def __len__(self) -> int: ...

    def get_by_type(self, kind: FieldPosition) -> list[Field]:
        """Every field in the given position, in insertion order."""
        ...


@runtime_checkable
class URI(Protocol):
    """Where a :py:class:`Request` is sent. Only ``path`` and ``query`` are signed."""

    scheme: str
    host: str
    port: int | None

    path: str | None
    """The absolute path exactly as sent, percent-encoding included."""

    query: str | None
    """The raw query string, without the leading ``?``."""

    fragment: str | None


class Request(Protocol):
    """The parts of an HTTP request that take part in signing.

    Adapters translate an HTTP framework's request object into this shape, both for
    outgoing requests that are signed and incoming requests that are verified.
    """

    method: str
    destination: URI
    fields: Fields
    content_fields: Fields | None
    """Body-specific fields kept apart from the general ones by some HTTP stacks.

    General fields win when both carry the same name.
    """

    body: AsyncIterable[bytes] | Iterable[bytes] | bytes | None
