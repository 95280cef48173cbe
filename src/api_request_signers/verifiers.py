# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Verification of incoming signed requests.

A verifier rebuilds the canonical request from the live request and the headers the
signer attached, recomputes the signature with the secret key resolved for the
request's api key and scope, and compares it to the ``Authorization`` header.

The result is ``True`` or ``False``. Requests that can't be checked at all, because
a header is missing or malformed, raise :py:class:`VerificationError`.
"""

import hmac
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Final

from ._http import APIRequest
from ._identity import SecretKeyRequest, SigningContext
from .canonical import normalize_signed_headers
from .exceptions import VerificationError, VerificationFailureReason
from .interfaces.identity import SecretKeyResolver, SyncSecretKeyResolver
from .signers import (
    ALGORITHM,
    ALGORITHM_HEADER,
    API_KEY_HEADER,
    AUTHORIZATION_HEADER,
    DATE_HEADER,
    SCOPE_HEADER,
    SIGNED_HEADERS_HEADER,
    AsyncHMACSigner,
    HMACSigner,
    parse_timestamp,
)

logger: Final = logging.getLogger(__name__)


@dataclass(kw_only=True, frozen=True)
class SignatureHeaders:
    """The signing headers of an incoming request, parsed and validated."""

    signature: str
    api_key: str
    scope: str
    date: datetime
    signed_headers: list[str]

    @property
    def secret_key_request(self) -> SecretKeyRequest:
        return SecretKeyRequest(api_key=self.api_key, scope=self.scope)


def _first_value(request: APIRequest, name: str) -> str:
    field = request.fields.get(name)
    value = field.values[0].strip() if field is not None and field.values else ""
    if not value:
        raise VerificationError(
            f"Required header {name} is missing from the request.",
            reason=VerificationFailureReason.MISSING_HEADER,
            header=name,
        )
    return value


def parse_signature_headers(request: APIRequest) -> SignatureHeaders:
    """Extract and validate the headers a signer attaches to a request.

    Only the first value of a repeated header is used.

    :raises VerificationError: If a header is missing, the date isn't in the exact
        format signers produce, the algorithm isn't HMAC-SHA256, or no signed headers
        are named.
    """
    signature = _first_value(request, AUTHORIZATION_HEADER)
    raw_date = _first_value(request, DATE_HEADER)
    scope = _first_value(request, SCOPE_HEADER)
    algorithm = _first_value(request, ALGORITHM_HEADER)
    raw_signed_headers = _first_value(request, SIGNED_HEADERS_HEADER)
    api_key = _first_value(request, API_KEY_HEADER)

    try:
        date = parse_timestamp(raw_date)
    except ValueError as e:
        raise VerificationError(
            f"Header {DATE_HEADER} is malformed: {raw_date!r}.",
            reason=VerificationFailureReason.MALFORMED_DATE,
            header=DATE_HEADER,
        ) from e

    if algorithm != ALGORITHM:
        raise VerificationError(
            f"Unsupported signing algorithm {algorithm!r}, expected {ALGORITHM}.",
            reason=VerificationFailureReason.UNSUPPORTED_ALGORITHM,
            header=ALGORITHM_HEADER,
        )

    signed_headers = normalize_signed_headers(raw_signed_headers.split(","))
    if not signed_headers:
        raise VerificationError(
            f"Header {SIGNED_HEADERS_HEADER} names no headers.",
            reason=VerificationFailureReason.MALFORMED_SIGNED_HEADERS,
            header=SIGNED_HEADERS_HEADER,
        )

    return SignatureHeaders(
        signature=signature,
        api_key=api_key,
        scope=scope,
        date=date,
        signed_headers=signed_headers,
    )


def signatures_match(expected: str, received: str) -> bool:
    """Compare two hex signatures in constant time."""
    return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))


class _BaseRequestVerifier:
    def __init__(self, *, encoding: str | None = None):
        """Initializes self.

        :param encoding: Text encoding of request bodies. Overrides the
            Content-Type charset, which otherwise defaults to UTF-8.
        """
        self._encoding = encoding

    def _log_outcome(self, headers: SignatureHeaders, matched: bool) -> None:
        logger.debug(
            "Signature %s for api key %s in scope %s.",
            "matched" if matched else "did not match",
            headers.api_key,
            headers.scope,
        )


class RequestVerifier(_BaseRequestVerifier):
    """Verifies signed requests with a synchronous secret key lookup."""

    def __init__(self, *, encoding: str | None = None):
        super().__init__(encoding=encoding)
        self._signer = HMACSigner()

    def verify(
        self, *, request: APIRequest, resolve_secret_key: SyncSecretKeyResolver
    ) -> bool:
        """Check the request's signature.

        :param request: The incoming request. Its body is read but not consumed.
        :param resolve_secret_key: Returns the secret key for an api key and scope.
            Errors it raises are propagated.
        :raises VerificationError: If the signing headers are missing or malformed.
        """
        headers = parse_signature_headers(request)
        secret_key = resolve_secret_key(headers.secret_key_request)
        expected = self._signer.calculate_signature(
            request=request,
            signed_headers=headers.signed_headers,
            date=headers.date,
            context=SigningContext(secret_key=secret_key, service=headers.scope),
            encoding=self._encoding,
        )
        matched = signatures_match(expected, headers.signature)
        self._log_outcome(headers, matched)
        return matched


class AsyncRequestVerifier(_BaseRequestVerifier):
    """Verifies signed requests with an asynchronous secret key lookup."""

    def __init__(self, *, encoding: str | None = None):
        super().__init__(encoding=encoding)
        self._signer = AsyncHMACSigner()

    async def verify(
        self, *, request: APIRequest, resolve_secret_key: SecretKeyResolver
    ) -> bool:
        """Check the request's signature.

        :param request: The incoming request. Its body is read but not consumed.
        :param resolve_secret_key: Coroutine function returning the secret key for
            an api key and scope. It is awaited without a timeout and errors it
            raises are propagated.
        :raises VerificationError: If the signing headers are missing or malformed.
        """
        headers = parse_signature_headers(request)
        secret_key = await resolve_secret_key(headers.secret_key_request)
        expected = await self._signer.calculate_signature(
            request=request,
            signed_headers=headers.signed_headers,
            date=headers.date,
            context=SigningContext(secret_key=secret_key, service=headers.scope),
            encoding=self._encoding,
        )
        matched = signatures_match(expected, headers.signature)
        self._log_outcome(headers, matched)
        return matched
