# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import hmac
from hashlib import sha256
from urllib.parse import quote


def url_encode(value: str) -> str:
    """Percent-encode every UTF-8 byte of ``value`` outside ``A-Za-z0-9-_.~``.

    Encoded bytes use uppercase hex digits. Already-encoded input is encoded again,
    so values must be encoded exactly once.
    """
    return quote(string=value, safe="")


def to_hex(data: bytes) -> str:
    """Render ``data`` as two lowercase hex digits per byte."""
    return data.hex()


def hash_value(value: str) -> bytes:
    """SHA-256 digest of the UTF-8 encoding of ``value``."""
    return sha256(value.encode("utf-8")).digest()


def keyed_hash(key: str | bytes, value: str) -> bytes:
    """HMAC-SHA256 of the UTF-8 encoding of ``value``.

    A ``str`` key is UTF-8 encoded first. A ``bytes`` key is used as-is, which lets
    the output of one call key the next.
    """
    if isinstance(key, str):
        key = key.encode("utf-8")
    return hmac.new(key=key, msg=value.encode("utf-8"), digestmod=sha256).digest()
