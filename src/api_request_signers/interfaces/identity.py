# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .._identity import SecretKeyRequest


@runtime_checkable
class Identity(Protocol):
    """Credentials a caller signs with, optionally valid only until a deadline."""

    expiration: datetime | None = None
    """Timezone-aware UTC instant after which the credentials must not be used."""

    @property
    def is_expired(self) -> bool:
        return self.expiration is not None and datetime.now(tz=UTC) >= self.expiration


@runtime_checkable
class APIKeyCredentialsIdentity(Identity, Protocol):
    """API key credentials used to sign outgoing requests."""

    api_key: str
    """The public identifier sent with every request in ``x-api-key``."""

    secret_key: str
    """The shared secret the signing key is derived from. Never transmitted."""


type SecretKeyResolver = Callable[[SecretKeyRequest], Awaitable[str]]
"""Asynchronous lookup of the secret key for an incoming request's api key and
scope."""


type SyncSecretKeyResolver = Callable[[SecretKeyRequest], str]
"""Synchronous lookup of the secret key for an incoming request's api key and
scope."""
