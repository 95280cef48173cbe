# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Secret key resolvers that can be handed to an
:py:class:`~api_request_signers.verifiers.AsyncRequestVerifier`."""

import logging
import os
import re
from collections.abc import Mapping, Sequence
from typing import Final

from ._identity import SecretKeyRequest
from .exceptions import SecretKeyNotFoundError
from .interfaces.identity import SecretKeyResolver

logger: Final = logging.getLogger(__name__)


class StaticSecretKeyResolver:
    """Resolve secret keys from a fixed mapping."""

    def __init__(self, secrets: Mapping[tuple[str, str] | str, str]) -> None:
        """Initializes self.

        :param secrets: Secret keys keyed by ``(api_key, scope)``, or by ``api_key``
            alone for keys valid in every scope. Scoped entries take precedence.
        """
        self._secrets = dict(secrets)

    async def __call__(self, request: SecretKeyRequest) -> str:
        for key in ((request.api_key, request.scope), request.api_key):
            if key in self._secrets:
                return self._secrets[key]
        raise SecretKeyNotFoundError(
            f"No secret key configured for api key {request.api_key} "
            f"in scope {request.scope}."
        )


class EnvironmentSecretKeyResolver:
    """Resolve secret keys from system environment variables.

    ``{prefix}_{SCOPE}`` is checked first, with the scope upper-cased and
    non-alphanumeric characters replaced by ``_``, then ``{prefix}``. If
    ``{api_key_variable}`` is set, only requests with a matching api key resolve.
    """

    def __init__(
        self,
        *,
        prefix: str = "API_SECRET_KEY",
        api_key_variable: str = "API_KEY",
    ) -> None:
        self._prefix = prefix
        self._api_key_variable = api_key_variable

    async def __call__(self, request: SecretKeyRequest) -> str:
        expected_api_key = os.getenv(self._api_key_variable)
        if expected_api_key is not None and expected_api_key != request.api_key:
            raise SecretKeyNotFoundError(
                f"Api key {request.api_key} does not match {self._api_key_variable}."
            )

        for variable in (self._scoped_variable(request.scope), self._prefix):
            secret_key = os.getenv(variable)
            if secret_key:
                return secret_key

        raise SecretKeyNotFoundError(
            f"Neither {self._scoped_variable(request.scope)} nor {self._prefix} "
            "is set."
        )

    def _scoped_variable(self, scope: str) -> str:
        return f"{self._prefix}_{re.sub(r'[^A-Za-z0-9]', '_', scope).upper()}"


class ChainedSecretKeyResolver:
    """Attempts to resolve a secret key by checking a sequence of sub-resolvers.

    If a nested resolver raises a :py:class:`SecretKeyNotFoundError`, the next
    resolver in the chain will be attempted. Any other error is propagated.
    """

    def __init__(self, resolvers: Sequence[SecretKeyResolver]) -> None:
        """Construct a ChainedSecretKeyResolver.

        :param resolvers: The sequence of resolvers to resolve secret keys from.
        """
        self._resolvers = resolvers

    async def __call__(self, request: SecretKeyRequest) -> str:
        logger.debug("Attempting to resolve secret key from resolver chain.")
        for resolver in self._resolvers:
            try:
                logger.debug(
                    "Attempting to resolve secret key from %s.", type(resolver)
                )
                return await resolver(request)
            except SecretKeyNotFoundError as e:
                logger.debug(
                    "Failed to resolve secret key from %s: %s", type(resolver), e
                )

        raise SecretKeyNotFoundError("Failed to resolve secret key from resolver chain.")
