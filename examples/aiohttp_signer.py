"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0

Sample signer using aiohttp.

    signer = APIKeySigner(
        properties=HMACSigningProperties(service="orders"),
        identity=APIKeyIdentity(api_key="AKID", secret_key="secret"),
    )
    headers = {"Content-Type": "application/json"}
    signature, body = await signer.generate_signature("POST", url, headers, body)
    headers.update(signature)
    async with session.post(url, headers=headers, data=body) as response:
        ...
"""

import typing
from collections.abc import Mapping

from api_request_signers import URI, APIRequest, AsyncHMACSigner, Fields

if typing.TYPE_CHECKING:
    from api_request_signers import APIKeyIdentity, HMACSigningProperties

SIGNING_HEADERS = (
    "Authorization",
    "x-api-key",
    "x-api-date",
    "x-api-scope",
    "x-api-algorithm",
    "x-api-signed-headers",
)


class APIKeySigner:
    """Minimal Signer implementation to be used with AIOHTTP."""

    def __init__(
        self,
        properties: "HMACSigningProperties",
        identity: "APIKeyIdentity",
    ):
        self._properties = properties
        self._identity = identity
        self._signer = AsyncHMACSigner()

    async def generate_signature(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes | typing.AsyncIterable[bytes] | None,
    ) -> tuple[Mapping[str, str], bytes | typing.AsyncIterable[bytes] | None]:
        """Generate signature headers for applying to request.

        The url must be passed exactly as it will be sent, since the path and query
        are signed as they appear.

        Returns the headers and the body to send. Hashing drains an async iterable
        body, so it comes back as a replayable buffer that must be sent in its place.
        """
        request = APIRequest(
            destination=URI.from_string(url),
            method=method,
            body=body,
            fields=Fields.from_items(headers),
        )
        signed_request = await self._signer.sign(
            properties=self._properties,
            request=request,
            identity=self._identity,
        )
        signing_headers = {
            header: signed_request.fields[header].as_string()
            for header in SIGNING_HEADERS
            if header in signed_request.fields
        }
        return signing_headers, signed_request.body  # type: ignore
