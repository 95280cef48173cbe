# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
from enum import Enum


class SignerWarning(UserWarning): ...


class BaseSignerException(Exception):
    """Top-level exception to capture signer-related errors."""


class MissingExpectedParameterException(BaseSignerException, ValueError):
    """Signing requires specific signing properties to be present."""


class SecretKeyNotFoundError(BaseSignerException, LookupError):
    """No secret key is known for the requested api key and scope."""


class VerificationFailureReason(Enum):
    """Why an incoming request could not be checked against its signature."""

    MISSING_HEADER = "missing_header"
    """A header required for verification is absent or empty."""

    MALFORMED_DATE = "malformed_date"
    """The ``x-api-date`` header doesn't match ``yyyy-MM-ddTHH:mm:ss.fffZ``."""

    MALFORMED_SIGNED_HEADERS = "malformed_signed_headers"
    """The ``x-api-signed-headers`` header names no headers."""

    UNSUPPORTED_ALGORITHM = "unsupported_algorithm"
    """The ``x-api-algorithm`` header names an algorithm other than HMAC-SHA256."""


class VerificationError(BaseSignerException):
    """An incoming request is malformed and can't be verified.

    A well-formed request whose signature doesn't match is not an error; verifiers
    return ``False`` for it.
    """

    def __init__(
        self,
        message: str,
        *,
        reason: VerificationFailureReason,
        header: str | None = None,
    ):
        super().__init__(message)
        self.reason = reason
        self.header = header
