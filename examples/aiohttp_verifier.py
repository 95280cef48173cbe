"""
Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
SPDX-License-Identifier: Apache-2.0

Sample aiohttp server middleware that rejects requests with a missing or invalid
signature. Secret keys are read from ``API_SECRET_KEY_{SCOPE}`` or
``API_SECRET_KEY``.
"""

import logging
from collections.abc import Awaitable, Callable

from aiohttp import web

from api_request_signers import URI, APIRequest, AsyncRequestVerifier, Fields
from api_request_signers.exceptions import SecretKeyNotFoundError, VerificationError
from api_request_signers.interfaces.identity import SecretKeyResolver
from api_request_signers.resolvers import EnvironmentSecretKeyResolver

logger = logging.getLogger(__name__)

type Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]


def signature_middleware(resolve_secret_key: SecretKeyResolver):
    """Build a middleware verifying every request with ``resolve_secret_key``."""
    verifier = AsyncRequestVerifier()

    @web.middleware
    async def verify_signature(
        request: web.Request, handler: Handler
    ) -> web.StreamResponse:
        # aiohttp caches the body, so handlers can still read it afterwards.
        body = await request.read()
        api_request = APIRequest(
            destination=URI(
                scheme=request.scheme,
                host=request.url.host or "",
                port=request.url.port,
                path=request.rel_url.raw_path,
                query=request.rel_url.raw_query_string,
            ),
            method=request.method,
            fields=Fields.from_items(request.headers.items()),
            body=body,
        )
        try:
            verified = await verifier.verify(
                request=api_request, resolve_secret_key=resolve_secret_key
            )
        except VerificationError as e:
            logger.info("Rejected malformed request: %s", e)
            raise web.HTTPBadRequest(reason=e.reason.value) from e
        except SecretKeyNotFoundError as e:
            raise web.HTTPUnauthorized(reason="unknown_api_key") from e

        if not verified:
            raise web.HTTPUnauthorized(reason="signature_mismatch")
        return await handler(request)

    return verify_signature


async def echo(request: web.Request) -> web.Response:
    return web.json_response(
        {
            "api_key": request.headers["x-api-key"],
            "scope": request.headers["x-api-scope"],
            "body": (await request.read()).decode("utf-8", errors="replace"),
        }
    )


def create_app() -> web.Application:
    app = web.Application(
        middlewares=[signature_middleware(EnvironmentSecretKeyResolver())]
    )
    app.router.add_route("*", "/{tail:.*}", echo)
    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)
    web.run_app(create_app())
