# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import datetime
import logging
import re
from collections.abc import Iterable, Sequence
from copy import deepcopy
from typing import Final, Required, TypedDict

from ._http import APIRequest, Field
from ._identity import APIKeyIdentity, SigningContext
from .canonical import (
    body_encoding,
    canonical_request,
    normalize_signed_headers,
    payload_hash,
    read_body,
    read_body_async,
)
from .exceptions import MissingExpectedParameterException
from .interfaces.identity import APIKeyCredentialsIdentity as _APIKeyCredentialsIdentity
from .utils import hash_value, keyed_hash, to_hex

logger: Final = logging.getLogger(__name__)

ALGORITHM: Final = "HMAC-SHA256"
SIGNING_KEY_PREFIX: Final = "KEY"
SIGNING_KEY_TERMINATOR: Final = "api_request"

DATE_STAMP_FORMAT: Final = "%Y%m%d"
TIMESTAMP_FORMAT: Final = "%Y-%m-%dT%H:%M:%S.%fZ"
_TIMESTAMP_RE: Final = re.compile(
    r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", re.ASCII
)

API_KEY_HEADER: Final = "x-api-key"
DATE_HEADER: Final = "x-api-date"
SCOPE_HEADER: Final = "x-api-scope"
ALGORITHM_HEADER: Final = "x-api-algorithm"
SIGNED_HEADERS_HEADER: Final = "x-api-signed-headers"
AUTHORIZATION_HEADER: Final = "Authorization"

# Headers every signature covers, in the order they are attached.
REQUIRED_SIGNED_HEADERS: Final = (
    API_KEY_HEADER,
    DATE_HEADER,
    SCOPE_HEADER,
    ALGORITHM_HEADER,
)


class HMACSigningProperties(TypedDict, total=False):
    service: Required[str]
    date: datetime.datetime
    signed_headers: Sequence[str]
    encoding: str


def to_utc(date: datetime.datetime) -> datetime.datetime:
    """Convert ``date`` to UTC. Naive datetimes are taken to already be in UTC."""
    if date.tzinfo is None:
        return date.replace(tzinfo=datetime.UTC)
    return date.astimezone(datetime.UTC)


def format_timestamp(date: datetime.datetime) -> str:
    """Format ``date`` as ``yyyy-MM-ddTHH:mm:ss.fffZ`` in UTC."""
    date = to_utc(date)
    return f"{date:%Y-%m-%dT%H:%M:%S}.{date.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime.datetime:
    """Parse a timestamp produced by :py:func:`format_timestamp`.

    :raises ValueError: If ``value`` isn't exactly ``yyyy-MM-ddTHH:mm:ss.fffZ``.
    """
    # strptime alone accepts unpadded fields and one to six fractional digits.
    if not _TIMESTAMP_RE.fullmatch(value):
        raise ValueError(
            f"Timestamp {value!r} does not match yyyy-MM-ddTHH:mm:ss.fffZ"
        )
    parsed = datetime.datetime.strptime(value, TIMESTAMP_FORMAT)
    return parsed.replace(tzinfo=datetime.UTC)


def signing_key(secret_key: str, service: str, date: datetime.datetime) -> bytes:
    """Derive the signing key scoped to a service and UTC calendar date.

    Only the date part of ``date`` is used, so every request signed on the same day
    for the same service shares one signing key.
    """

    # Components of Signing Key Calculation
    #
    # DateKey        = HMAC-SHA256("KEY"+"<SecretKey>", "<YYYYMMDD>")
    # DateServiceKey = HMAC-SHA256(<DateKey>, "<service>")
    # SigningKey     = HMAC-SHA256(<DateServiceKey>, "api_request")
    date_stamp = to_utc(date).strftime(DATE_STAMP_FORMAT)
    k_date = keyed_hash(f"{SIGNING_KEY_PREFIX}{secret_key}", date_stamp)
    k_service = keyed_hash(k_date, service)
    return keyed_hash(k_service, SIGNING_KEY_TERMINATOR)


def string_to_sign(
    *, service: str, date: datetime.datetime, canonical_request: str
) -> str:
    """Concatenate the algorithm, timestamp, scope and hashed canonical request.

    The string to sign is defined as::

        Algorithm \\n
        RequestDateTime \\n
        Scope \\n
        HashedCanonicalRequest
    """
    return (
        f"{ALGORITHM}\n"
        f"{format_timestamp(date)}\n"
        f"{service}\n"
        f"{to_hex(hash_value(canonical_request))}"
    )


def signature(
    *,
    secret_key: str,
    service: str,
    date: datetime.datetime,
    string_to_sign: str,
) -> str:
    """Sign the string to sign with the derived signing key."""
    key = signing_key(secret_key, service, date)
    return to_hex(keyed_hash(key, string_to_sign))


def _transmitted_signed_headers(names: Iterable[str]) -> str:
    # Keeps attachment order. Verifiers sort the list themselves.
    unique = dict.fromkeys(name.strip().lower() for name in names)
    return ",".join(name for name in unique if name)


class _BaseHMACSigner:
    def _validate_identity(self, *, identity: APIKeyIdentity) -> None:
        """Perform runtime and expiration checks before attempting signing."""
        if not isinstance(identity, _APIKeyCredentialsIdentity):  # pyright: ignore
            raise ValueError(
                "Received unexpected value for identity parameter. Expected "
                f"APIKeyIdentity but received {type(identity)}."
            )
        elif identity.is_expired:
            raise ValueError(
                f"Provided identity expired at {identity.expiration}. Please "
                "refresh the credentials or update the expiration parameter."
            )

    def _normalize_signing_properties(
        self, *, properties: HMACSigningProperties
    ) -> HMACSigningProperties:
        if not properties.get("service"):
            raise MissingExpectedParameterException(
                "Cannot sign a request without a service in the signing properties."
            )
        # Create copy of signing properties to avoid mutating the original
        new_properties = HMACSigningProperties(**properties)
        date = new_properties.get("date") or datetime.datetime.now(datetime.UTC)
        # Only milliseconds are transmitted.
        date = to_utc(date)
        new_properties["date"] = date.replace(
            microsecond=date.microsecond // 1000 * 1000
        )
        return new_properties

    def _apply_required_fields(
        self,
        *,
        request: APIRequest,
        properties: HMACSigningProperties,
        identity: APIKeyIdentity,
    ) -> list[str]:
        """Attach the mandatory headers and return every signed header name."""
        required_values = (
            identity.api_key,
            format_timestamp(properties["date"]),
            properties["service"],
            ALGORITHM,
        )
        for name, value in zip(REQUIRED_SIGNED_HEADERS, required_values):
            request.fields.set_field(Field(name=name, values=[value]))

        signed_headers = [
            *REQUIRED_SIGNED_HEADERS,
            *properties.get("signed_headers", ()),
        ]
        request.fields.set_field(
            Field(
                name=SIGNED_HEADERS_HEADER,
                values=[_transmitted_signed_headers(signed_headers)],
            )
        )
        return signed_headers


class HMACSigner(_BaseHMACSigner):
    """Request signer for applying the HMAC-SHA256 api request signature."""

    def sign(
        self,
        *,
        properties: HMACSigningProperties,
        request: APIRequest,
        identity: APIKeyIdentity,
    ) -> APIRequest:
        """Generate and apply a signature to a copy of the supplied request.

        :param properties: HMACSigningProperties naming the service scope and,
            optionally, the signing date, extra signed headers and body encoding.
        :param request: An APIRequest to sign prior to sending it.
        :param identity: The api key and secret key to sign with.
        """
        self._validate_identity(identity=identity)
        new_properties = self._normalize_signing_properties(properties=properties)
        new_request = deepcopy(request)
        signed_headers = self._apply_required_fields(
            request=new_request, properties=new_properties, identity=identity
        )

        logger.debug(
            "Signing %s request for api key %s in scope %s.",
            new_request.method,
            identity.api_key,
            new_properties["service"],
        )
        request_signature = self.calculate_signature(
            request=new_request,
            signed_headers=signed_headers,
            date=new_properties["date"],
            context=SigningContext(
                secret_key=identity.secret_key, service=new_properties["service"]
            ),
            encoding=new_properties.get("encoding"),
        )
        # The signature is sent verbatim, without an authorization scheme.
        new_request.fields.set_field(
            Field(name=AUTHORIZATION_HEADER, values=[request_signature])
        )
        # The body may have been replaced by a replayable buffer.
        request.body = new_request.body
        return new_request

    def calculate_signature(
        self,
        *,
        request: APIRequest,
        signed_headers: Iterable[str],
        date: datetime.datetime,
        context: SigningContext,
        encoding: str | None = None,
    ) -> str:
        """Compute the hex signature of a request as it currently stands.

        :param request: The request to sign. Its body is read but not consumed.
        :param signed_headers: Header names to sign, in any case and order.
        :param date: The signing date. The timestamp is sent with millisecond
            precision, so callers verifying later must pass the same milliseconds.
        :param context: The secret key and service scope.
        :param encoding: Text encoding of the body, overriding the Content-Type
            charset.
        """
        canonical = self.canonical_request(
            request=request, signed_headers=signed_headers, encoding=encoding
        )
        return signature(
            secret_key=context.secret_key,
            service=context.service,
            date=date,
            string_to_sign=string_to_sign(
                service=context.service, date=date, canonical_request=canonical
            ),
        )

    def canonical_request(
        self,
        *,
        request: APIRequest,
        signed_headers: Iterable[str],
        encoding: str | None = None,
    ) -> str:
        """Build the canonical request for ``request``.

        This is useful to quickly compare inputs to find signature mismatches and
        unintended variances.
        """
        payload = read_body(request)
        return canonical_request(
            method=request.method,
            path=request.destination.path,
            query=request.destination.query,
            fields=request.fields,
            content_fields=request.content_fields,
            signed_headers=normalize_signed_headers(signed_headers),
            hashed_payload=payload_hash(payload, body_encoding(request, encoding)),
        )


class AsyncHMACSigner(_BaseHMACSigner):
    """Request signer for applying the HMAC-SHA256 api request signature to requests
    with async bodies."""

    async def sign(
        self,
        *,
        properties: HMACSigningProperties,
        request: APIRequest,
        identity: APIKeyIdentity,
    ) -> APIRequest:
        """Generate and apply a signature to a copy of the supplied request.

        :param properties: HMACSigningProperties naming the service scope and,
            optionally, the signing date, extra signed headers and body encoding.
        :param request: An APIRequest to sign prior to sending it.
        :param identity: The api key and secret key to sign with.
        """
        self._validate_identity(identity=identity)
        new_properties = self._normalize_signing_properties(properties=properties)
        new_request = deepcopy(request)
        signed_headers = self._apply_required_fields(
            request=new_request, properties=new_properties, identity=identity
        )

        logger.debug(
            "Signing %s request for api key %s in scope %s.",
            new_request.method,
            identity.api_key,
            new_properties["service"],
        )
        request_signature = await self.calculate_signature(
            request=new_request,
            signed_headers=signed_headers,
            date=new_properties["date"],
            context=SigningContext(
                secret_key=identity.secret_key, service=new_properties["service"]
            ),
            encoding=new_properties.get("encoding"),
        )
        new_request.fields.set_field(
            Field(name=AUTHORIZATION_HEADER, values=[request_signature])
        )
        request.body = new_request.body
        return new_request

    async def calculate_signature(
        self,
        *,
        request: APIRequest,
        signed_headers: Iterable[str],
        date: datetime.datetime,
        context: SigningContext,
        encoding: str | None = None,
    ) -> str:
        """Compute the hex signature of a request as it currently stands.

        See :py:meth:`HMACSigner.calculate_signature`.
        """
        canonical = await self.canonical_request(
            request=request, signed_headers=signed_headers, encoding=encoding
        )
        return signature(
            secret_key=context.secret_key,
            service=context.service,
            date=date,
            string_to_sign=string_to_sign(
                service=context.service, date=date, canonical_request=canonical
            ),
        )

    async def canonical_request(
        self,
        *,
        request: APIRequest,
        signed_headers: Iterable[str],
        encoding: str | None = None,
    ) -> str:
        """Build the canonical request for ``request``."""
        payload = await read_body_async(request)
        return canonical_request(
            method=request.method,
            path=request.destination.path,
            query=request.destination.query,
            fields=request.fields,
            content_fields=request.content_fields,
            signed_headers=normalize_signed_headers(signed_headers),
            hashed_payload=payload_hash(payload, body_encoding(request, encoding)),
        )
