# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from collections.abc import AsyncIterable, Iterable, Iterator, Mapping
from copy import deepcopy
from dataclasses import dataclass
from urllib.parse import urlsplit

import api_request_signers.interfaces.http as interfaces_http


def _field_key(name: str) -> str:
    return name.strip().lower()


class Field(interfaces_http.Field):
    """A header or trailer and its values, in the order they were received."""

    def __init__(
        self,
        *,
        name: str,
        values: Iterable[str] | None = None,
        kind: interfaces_http.FieldPosition = interfaces_http.FieldPosition.HEADER,
    ):
        self.name = name
        self.values: list[str] = [*values] if values is not None else []
        self.kind = kind

    def add(self, value: str) -> None:
        self.values.append(value)

    def set(self, values: list[str]) -> None:
        self.values = values

    def as_string(self, delimiter: str = ",") -> str:
        """Join the values with ``delimiter``.

        Values are not quoted or escaped, so a value containing the delimiter can't
        be told apart from two values. An empty field gives ``""``.
        """
        return delimiter.join(self.values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Field):
            return False
        return (self.name, self.kind, self.values) == (
            other.name,
            other.kind,
            other.values,
        )

    def __repr__(self) -> str:
        return f"Field(name={self.name!r}, values={self.values!r}, kind={self.kind!r})"


class Fields(interfaces_http.Fields):
    """Request fields keyed by trimmed, lower-cased name.

    Iteration follows insertion order. Replacing a field keeps its original slot.
    """

    def __init__(self, initial: Iterable[interfaces_http.Field] | None = None):
        """Initializes self.

        :param initial: Fields to start with. Names must be unique after
            normalization; use :py:meth:`from_items` to merge repeated names.
        """
        self._fields: dict[str, interfaces_http.Field] = {}
        duplicates: list[str] = []
        for field in initial or ():
            key = _field_key(field.name)
            if key in self._fields:
                duplicates.append(key)
            self._fields[key] = field
        if duplicates:
            raise ValueError(
                "Initial fields must have unique names, but these appear more than "
                f"once: {', '.join(sorted(set(duplicates)))}."
            )

    @classmethod
    def from_items(
        cls, items: Mapping[str, str] | Iterable[tuple[str, str]]
    ) -> Fields:
        """Build fields from name-value pairs the way HTTP stacks expose headers.

        Pairs whose names only differ in case end up as values of one field, in the
        order they appear. The first spelling of the name is kept.
        """
        fields = cls()
        for name, value in items.items() if isinstance(items, Mapping) else items:
            existing = fields.get(name)
            if existing is None:
                fields.set_field(Field(name=name, values=[value]))
            else:
                existing.add(value)
        return fields

    def set_field(self, field: interfaces_http.Field) -> None:
        self[field.name] = field

    def get(
        self, key: str, default: interfaces_http.Field | None = None
    ) -> interfaces_http.Field | None:
        return self._fields.get(_field_key(key), default)

    def get_by_type(
        self, kind: interfaces_http.FieldPosition
    ) -> list[interfaces_http.Field]:
        return [field for field in self._fields.values() if field.kind is kind]

    def __setitem__(self, name: str, field: interfaces_http.Field) -> None:
        if _field_key(name) != _field_key(field.name):
            raise ValueError(
                f"Cannot store field {field.name!r} under the name {name!r}."
            )
        self._fields[_field_key(name)] = field

    def __getitem__(self, name: str) -> interfaces_http.Field:
        return self._fields[_field_key(name)]

    def __delitem__(self, name: str) -> None:
        del self._fields[_field_key(name)]

    def __contains__(self, name: str) -> bool:
        return _field_key(name) in self._fields

    def __iter__(self) -> Iterator[interfaces_http.Field]:
        return iter(self._fields.values())

    def __len__(self) -> int:
        return len(self._fields)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Fields):
            return False
        return list(self._fields.items()) == list(other._fields.items())

    def __repr__(self) -> str:
        return f"Fields({list(self._fields.values())!r})"


@dataclass(kw_only=True, frozen=True)
class URI(interfaces_http.URI):
    """Destination of an :py:class:`APIRequest`.

    ``path`` and ``query`` are kept exactly as they will be sent, since both are
    signed verbatim.
    """

    scheme: str = "https"
    host: str
    port: int | None = None
    path: str | None = None
    query: str | None = None
    fragment: str | None = None

    @classmethod
    def from_string(cls, url: str) -> URI:
        """Split an absolute URL. The path and query are not decoded."""
        parts = urlsplit(url)
        return cls(
            scheme=parts.scheme or "https",
            host=parts.hostname or "",
            port=parts.port,
            path=parts.path or None,
            query=parts.query or None,
            fragment=parts.fragment or None,
        )


class APIRequest(interfaces_http.Request):
    """An HTTP request to sign, or an incoming one to verify."""

    def __init__(
        self,
        *,
        destination: URI,
        method: str,
        fields: Fields,
        body: AsyncIterable[bytes] | Iterable[bytes] | bytes | None = None,
        content_fields: Fields | None = None,
    ):
        self.destination = destination
        self.method = method
        self.fields = fields
        self.content_fields = content_fields
        self.body = body

    def __deepcopy__(self, memo: dict[int, object] | None = None) -> APIRequest:
        memo = {} if memo is None else memo
        if id(self) in memo:
            return memo[id(self)]  # type: ignore

        # Streams can't be copied, so the copy reads from the same body. The URI
        # is frozen and shared as well.
        copied = APIRequest(
            destination=self.destination,
            method=self.method,
            fields=deepcopy(self.fields, memo),
            body=self.body,
            content_fields=deepcopy(self.content_fields, memo),
        )
        memo[id(self)] = copied
        return copied
