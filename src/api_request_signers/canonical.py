# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Canonical request construction shared by signers and verifiers.

The canonical request is defined as::

    <HTTPMethod>\\n
    <AbsolutePath>\\n
    <CanonicalQueryString>\\n
    <CanonicalHeaders>\\n
    <SignedHeaders>\\n
    <HashedPayload>

Each entry of ``<CanonicalHeaders>`` ends in a newline of its own, so a request with
at least one signed header has an empty line before ``<SignedHeaders>``.
"""

import codecs
import io
import logging
import warnings
from collections.abc import AsyncIterable, Iterable
from email.message import Message
from inspect import iscoroutinefunction
from typing import Final
from urllib.parse import parse_qsl

from ._io import AsyncBytesReader
from .exceptions import SignerWarning
from .interfaces.http import FieldPosition, Fields, Request
from .interfaces.io import AsyncSeekable, Seekable
from .utils import hash_value, to_hex, url_encode

logger: Final = logging.getLogger(__name__)

DEFAULT_ENCODING: Final = "utf-8"


def normalize_signed_headers(names: Iterable[str]) -> list[str]:
    """Trim, lower-case, deduplicate and sort a list of header names.

    Signers and verifiers both run the names through here, so the comma-joined list
    sent in ``x-api-signed-headers`` is enough to rebuild the same ordering.
    """
    normalized = {name.strip().lower() for name in names}
    normalized.discard("")
    return sorted(normalized)


def canonical_query(query: str | Iterable[tuple[str, str]] | None) -> str:
    """Encode query parameters as ``key=value`` pairs joined by ``&``.

    Parameters stay in the order the request carries them, duplicates included.

    :param query: The raw query string, without the leading ``?``, or already
        decoded key-value pairs.
    """
    if not query:
        return ""

    if isinstance(query, str):
        query = parse_qsl(qs=query, keep_blank_values=True)

    return "&".join(f"{url_encode(key)}={url_encode(value)}" for key, value in query)


def _merge_fields(fields: Fields, content_fields: Fields | None) -> dict[str, str]:
    merged: dict[str, str] = {}
    for field in fields.get_by_type(FieldPosition.HEADER):
        merged[field.name.strip().lower()] = " ".join(field.values).strip()

    if content_fields is not None:
        for field in content_fields.get_by_type(FieldPosition.HEADER):
            name = field.name.strip().lower()
            if name not in merged:
                merged[name] = " ".join(field.values).strip()

    return merged


def canonical_fields(
    *,
    fields: Fields,
    signed_headers: Iterable[str],
    content_fields: Fields | None = None,
) -> str:
    """Render the signed headers as sorted ``name:value`` lines.

    Multiple values of one header are joined by a single space. When a name is in
    both ``fields`` and ``content_fields`` the value from ``fields`` is used.

    Signed names the request doesn't carry produce no line.

    :param fields: The request's general header fields.
    :param signed_headers: Lower-cased header names to include.
    :param content_fields: Body-specific header fields, if the request keeps them
        separately.
    """
    merged = _merge_fields(fields, content_fields)
    signed = set(signed_headers)

    missing = signed.difference(merged)
    if missing:
        logger.debug(
            "Signed headers not present on request, skipping: %s",
            ", ".join(sorted(missing)),
        )

    return "".join(
        f"{name}:{merged[name]}\n" for name in sorted(merged) if name in signed
    )


def body_encoding(request: Request, encoding: str | None = None) -> str:
    """Pick the text encoding the body is decoded with before hashing.

    An explicit ``encoding`` wins, then the charset of the request's
    ``Content-Type``, then UTF-8. Unknown charsets fall back to UTF-8.
    """
    if encoding is not None:
        return encoding

    content_type = _content_type(request)
    if content_type is None:
        return DEFAULT_ENCODING

    message = Message()
    message["Content-Type"] = content_type
    charset = message.get_content_charset()
    if charset is None:
        return DEFAULT_ENCODING

    try:
        codecs.lookup(charset)
    except LookupError:
        logger.debug("Unknown charset %r on request body, using utf-8.", charset)
        return DEFAULT_ENCODING
    return charset


def _content_type(request: Request) -> str | None:
    for fields in (request.fields, request.content_fields):
        if fields is not None and "content-type" in fields:
            return fields["content-type"].as_string()
    return None


def payload_hash(payload: bytes, encoding: str = DEFAULT_ENCODING) -> str:
    """Hex SHA-256 of the body read as text.

    The bytes are decoded with ``encoding`` and the text hashed as UTF-8. Bytes that
    don't decode become U+FFFD.
    """
    return to_hex(hash_value(payload.decode(encoding, errors="replace")))


def read_body(request: Request) -> bytes:
    """Read the whole request body without consuming it.

    A seekable body is read from its start, whatever its current position, and left
    where it was. Any other iterable body is
    buffered and the request's body replaced with the buffer.

    :raises TypeError: If the body is only async iterable.
    """
    body = request.body

    if body is None:
        return b""

    if isinstance(body, bytes | bytearray):
        return bytes(body)

    if not isinstance(body, Iterable):
        raise TypeError(
            "An async body was attached to a synchronous signer. Please use "
            "the async signer or verifier for async requests or ensure your body "
            "is of type Iterable[bytes]."
        )

    if isinstance(body, Seekable):
        position = body.tell()
        body.seek(0)
        payload = b"".join(body)
        body.seek(position)
        return payload

    _warn_buffering()
    buffer = io.BytesIO()
    for chunk in body:
        buffer.write(chunk)
    buffer.seek(0)
    request.body = buffer
    return buffer.getvalue()


async def read_body_async(request: Request) -> bytes:
    """Read the whole request body without consuming it.

    Async bodies with a coroutine ``seek`` are read from their start and left where
    they were. Other
    async bodies are buffered and replaced with an :py:class:`AsyncBytesReader`.
    Synchronous bodies are handled as :py:func:`read_body` does.
    """
    body = request.body

    if not isinstance(body, AsyncIterable):
        return read_body(request)

    if isinstance(body, AsyncSeekable) and iscoroutinefunction(body.seek):
        position = body.tell()
        await body.seek(0)
        payload = b"".join([chunk async for chunk in body])
        await body.seek(position)
        return payload

    _warn_buffering()
    buffer = io.BytesIO()
    async for chunk in body:
        buffer.write(chunk)
    buffer.seek(0)
    request.body = AsyncBytesReader(buffer)
    return buffer.getvalue()


def _warn_buffering() -> None:
    warnings.warn(
        "Request body is not seekable and will be buffered in memory for "
        "hashing. This may result in decreased performance for large bodies.",
        SignerWarning,
    )


def canonical_request(
    *,
    method: str,
    path: str | None,
    query: str | Iterable[tuple[str, str]] | None,
    fields: Fields,
    signed_headers: list[str],
    hashed_payload: str,
    content_fields: Fields | None = None,
) -> str:
    """Assemble the canonical request string.

    :param method: The HTTP method exactly as transmitted.
    :param path: The absolute path, used without normalization. ``None`` means ``/``.
    :param query: The query string or decoded query pairs.
    :param fields: The request's header fields.
    :param signed_headers: Normalized signed header names, see
        :py:func:`normalize_signed_headers`.
    :param hashed_payload: Hex SHA-256 of the body, see :py:func:`payload_hash`.
    :param content_fields: Body-specific header fields, if kept separately.
    """
    canonical_headers = canonical_fields(
        fields=fields, signed_headers=signed_headers, content_fields=content_fields
    )
    return (
        f"{method}\n"
        f"{path or '/'}\n"
        f"{canonical_query(query)}\n"
        f"{canonical_headers}\n"
        f"{';'.join(signed_headers)}\n"
        f"{hashed_payload}"
    )
