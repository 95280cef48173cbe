# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
from collections.abc import AsyncIterator, Callable
from datetime import UTC, datetime
from io import BytesIO

import pytest
from api_request_signers import (
    URI,
    APIKeyIdentity,
    APIRequest,
    AsyncBytesReader,
    AsyncRequestVerifier,
    Field,
    Fields,
    HMACSigner,
    HMACSigningProperties,
    RequestVerifier,
    SecretKeyRequest,
    VerificationError,
    VerificationFailureReason,
)
from api_request_signers.exceptions import SecretKeyNotFoundError, SignerWarning
from api_request_signers.verifiers import parse_signature_headers, signatures_match

API_KEY = "AKID123456"
SECRET_KEY = "EXAMPLE1234SECRET"
SERVICE = "orders"
DATE = datetime(2015, 8, 30, 12, 36, 0, 500000, tzinfo=UTC)
BODY = b'{"id": 1}'


def sign(
    body: bytes | None = BODY, signed_headers: list[str] | None = None
) -> APIRequest:
    request = APIRequest(
        destination=URI(host="example.com", path="/v1/orders", query="b=2&a=1"),
        method="POST",
        body=BytesIO(body) if body is not None else None,
        fields=Fields(
            [
                Field(name="Content-Type", values=["application/json"]),
                Field(name="Host", values=["example.com"]),
            ]
        ),
    )
    return HMACSigner().sign(
        properties=HMACSigningProperties(
            service=SERVICE,
            date=DATE,
            signed_headers=signed_headers or ["Content-Type"],
        ),
        request=request,
        identity=APIKeyIdentity(api_key=API_KEY, secret_key=SECRET_KEY),
    )


def resolve_secret_key(request: SecretKeyRequest) -> str:
    if request != SecretKeyRequest(api_key=API_KEY, scope=SERVICE):
        raise SecretKeyNotFoundError(f"Unknown api key {request.api_key}")
    return SECRET_KEY


async def resolve_secret_key_async(request: SecretKeyRequest) -> str:
    return resolve_secret_key(request)


def verify(request: APIRequest) -> bool:
    return RequestVerifier().verify(
        request=request, resolve_secret_key=resolve_secret_key
    )


def test_round_trip() -> None:
    assert verify(sign())


def test_round_trip_without_body() -> None:
    assert verify(sign(body=None))


def test_verify_leaves_body_readable() -> None:
    request = sign()
    assert verify(request)
    assert request.body.read() == BODY  # type: ignore


def test_verify_after_body_was_read() -> None:
    request = sign()
    assert request.body.read() == BODY  # type: ignore
    assert verify(request)


def test_verify_with_buffered_iterable_body() -> None:
    request = sign()
    request.body = iter([b'{"id"', b": 1}"])
    with pytest.warns(SignerWarning):
        assert verify(request)
    assert request.body.read() == BODY  # type: ignore


def test_wrong_secret_key() -> None:
    assert not RequestVerifier().verify(
        request=sign(), resolve_secret_key=lambda _: "not-the-secret"
    )


@pytest.mark.parametrize(
    "tamper",
    [
        pytest.param(
            lambda r: setattr(r, "body", BytesIO(b'{"id": 2}')), id="body-byte"
        ),
        pytest.param(lambda r: setattr(r, "body", None), id="body-removed"),
        pytest.param(lambda r: setattr(r, "method", "PUT"), id="method"),
        pytest.param(
            lambda r: setattr(
                r, "destination", URI(host="example.com", path="/v1/orders/")
            ),
            id="path",
        ),
        pytest.param(
            lambda r: setattr(
                r,
                "destination",
                URI(host="example.com", path="/v1/orders", query="a=1&b=2"),
            ),
            id="query-order",
        ),
        pytest.param(
            lambda r: r.fields["Content-Type"].set(["text/plain"]),
            id="signed-header-value",
        ),
        pytest.param(
            lambda r: r.fields["x-api-date"].set(["2015-08-30T12:36:01.500Z"]),
            id="date",
        ),
        pytest.param(
            lambda r: r.fields["x-api-signed-headers"].set(
                ["x-api-key,x-api-date,x-api-scope,x-api-algorithm"]
            ),
            id="signed-header-list",
        ),
        pytest.param(
            lambda r: r.fields["Authorization"].set(["0" * 64]), id="signature"
        ),
    ],
)
def test_tampering_is_detected(tamper: Callable[[APIRequest], None]) -> None:
    request = sign()
    tamper(request)
    assert not verify(request)


def test_unsigned_headers_are_ignored() -> None:
    request = sign()
    request.fields.set_field(Field(name="X-Trace-Id", values=["abc"]))
    request.fields["Host"].set(["proxy.internal"])
    assert verify(request)


def test_signed_header_list_case_and_order() -> None:
    request = sign()
    request.fields["x-api-signed-headers"].set(
        ["Content-Type, X-API-KEY,x-api-scope,x-api-date,X-Api-Algorithm"]
    )
    assert verify(request)


def test_signed_header_missing_from_request_is_skipped() -> None:
    request = sign(signed_headers=["Content-Type", "X-Missing"])
    assert request.fields["x-api-signed-headers"].as_string().endswith("x-missing")
    assert verify(request)


def test_only_first_header_value_is_used() -> None:
    request = sign()
    request.fields["x-api-scope"].add("catalog")
    headers = parse_signature_headers(request)
    assert headers.scope == SERVICE


def test_parse_signature_headers() -> None:
    headers = parse_signature_headers(sign())
    assert headers.api_key == API_KEY
    assert headers.scope == SERVICE
    assert headers.date == DATE
    assert headers.signed_headers == [
        "content-type",
        "x-api-algorithm",
        "x-api-date",
        "x-api-key",
        "x-api-scope",
    ]
    assert headers.secret_key_request == SecretKeyRequest(
        api_key=API_KEY, scope=SERVICE
    )


@pytest.mark.parametrize(
    "header",
    [
        "Authorization",
        "x-api-date",
        "x-api-scope",
        "x-api-algorithm",
        "x-api-signed-headers",
        "x-api-key",
    ],
)
def test_missing_header(header: str) -> None:
    request = sign()
    del request.fields[header]
    with pytest.raises(VerificationError) as exc_info:
        verify(request)
    assert exc_info.value.reason is VerificationFailureReason.MISSING_HEADER
    assert exc_info.value.header == header


def test_empty_header() -> None:
    request = sign()
    request.fields["x-api-key"].set([" "])
    with pytest.raises(VerificationError) as exc_info:
        verify(request)
    assert exc_info.value.reason is VerificationFailureReason.MISSING_HEADER


@pytest.mark.parametrize(
    "value", ["2015-08-30T12:36:00Z", "2015-08-30", "not a date", "1440938160"]
)
def test_malformed_date(value: str) -> None:
    request = sign()
    request.fields["x-api-date"].set([value])
    with pytest.raises(VerificationError) as exc_info:
        verify(request)
    assert exc_info.value.reason is VerificationFailureReason.MALFORMED_DATE
    assert isinstance(exc_info.value.__cause__, ValueError)


def test_unsupported_algorithm() -> None:
    request = sign()
    request.fields["x-api-algorithm"].set(["HMAC-SHA1"])
    with pytest.raises(VerificationError) as exc_info:
        verify(request)
    assert exc_info.value.reason is VerificationFailureReason.UNSUPPORTED_ALGORITHM


def test_empty_signed_header_list() -> None:
    request = sign()
    request.fields["x-api-signed-headers"].set([", ,"])
    with pytest.raises(VerificationError) as exc_info:
        verify(request)
    assert exc_info.value.reason is VerificationFailureReason.MALFORMED_SIGNED_HEADERS


def test_resolver_errors_propagate() -> None:
    request = sign()
    request.fields["x-api-key"].set(["unknown"])
    with pytest.raises(SecretKeyNotFoundError):
        verify(request)


def test_signatures_match() -> None:
    assert signatures_match("abc", "abc")
    assert not signatures_match("abc", "abd")
    assert not signatures_match("abc", "ab")
    assert not signatures_match("abc", "ābc")


class TestAsyncRequestVerifier:
    VERIFIER = AsyncRequestVerifier()

    async def test_round_trip(self) -> None:
        assert await self.VERIFIER.verify(
            request=sign(), resolve_secret_key=resolve_secret_key_async
        )

    async def test_async_body(self) -> None:
        request = sign()
        request.body = AsyncBytesReader(BODY)
        assert await self.VERIFIER.verify(
            request=request, resolve_secret_key=resolve_secret_key_async
        )
        assert await request.body.read() == BODY

    async def test_verify_after_body_was_read(self) -> None:
        request = sign()
        request.body = AsyncBytesReader(BODY)
        assert await request.body.read() == BODY
        assert await self.VERIFIER.verify(
            request=request, resolve_secret_key=resolve_secret_key_async
        )

    async def test_async_iterable_body_is_buffered(self) -> None:
        async def chunks() -> AsyncIterator[bytes]:
            yield BODY[:4]
            yield BODY[4:]

        request = sign()
        request.body = chunks()
        with pytest.warns(SignerWarning):
            assert await self.VERIFIER.verify(
                request=request, resolve_secret_key=resolve_secret_key_async
            )
        assert isinstance(request.body, AsyncBytesReader)
        assert await request.body.read() == BODY

    async def test_tampered_body(self) -> None:
        request = sign()
        request.body = AsyncBytesReader(b'{"id": 2}')
        assert not await self.VERIFIER.verify(
            request=request, resolve_secret_key=resolve_secret_key_async
        )

    async def test_resolver_errors_propagate(self) -> None:
        async def failing_resolver(request: SecretKeyRequest) -> str:
            raise ConnectionError("credential store unavailable")

        with pytest.raises(ConnectionError):
            await self.VERIFIER.verify(
                request=sign(), resolve_secret_key=failing_resolver
            )

    async def test_malformed_request_skips_resolver(self) -> None:
        async def unexpected_resolver(request: SecretKeyRequest) -> str:
            raise AssertionError("Resolver should not have been called!")

        request = sign()
        request.fields["x-api-date"].set(["yesterday"])
        with pytest.raises(VerificationError):
            await self.VERIFIER.verify(
                request=request, resolve_secret_key=unexpected_resolver
            )


def test_encoding_override() -> None:
    body = "café".encode("latin-1")
    request = sign(body=body)
    # Signed as UTF-8 text, the latin-1 byte doesn't decode and is replaced.
    assert verify(request)
    assert not RequestVerifier(encoding="latin-1").verify(
        request=request, resolve_secret_key=resolve_secret_key
    )
