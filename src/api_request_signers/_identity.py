# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from dataclasses import dataclass, field
from datetime import datetime

from .interfaces.identity import APIKeyCredentialsIdentity


@dataclass(kw_only=True)
class APIKeyIdentity(APIKeyCredentialsIdentity):
    api_key: str
    secret_key: str = field(repr=False)
    expiration: datetime | None = None


@dataclass(kw_only=True, frozen=True)
class SigningContext:
    """The secret and scope a single signature is computed under."""

    secret_key: str = field(repr=False)
    service: str


@dataclass(kw_only=True, frozen=True)
class SecretKeyRequest:
    """Arguments handed to a secret key resolver during verification."""

    api_key: str
    scope: str
