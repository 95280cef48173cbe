# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""API Request Signers computes and verifies HMAC-SHA256 signatures for HTTP requests,
for use with HTTP tools such as AioHTTP, Requests, urllib3, etc."""

from __future__ import annotations

from ._http import APIRequest, Field, Fields, URI
from ._identity import APIKeyIdentity, SecretKeyRequest, SigningContext
from ._io import AsyncBytesReader
from .exceptions import VerificationError, VerificationFailureReason
from .signers import (
    AsyncHMACSigner,
    HMACSigner,
    HMACSigningProperties,
)
from .verifiers import AsyncRequestVerifier, RequestVerifier

__license__ = "Apache-2.0"
__version__ = "0.1.0"

__all__ = (
    "URI",
    "APIKeyIdentity",
    "APIRequest",
    "AsyncBytesReader",
    "AsyncHMACSigner",
    "AsyncRequestVerifier",
    "Field",
    "Fields",
    "HMACSigner",
    "HMACSigningProperties",
    "RequestVerifier",
    "SecretKeyRequest",
    "SigningContext",
    "VerificationError",
    "VerificationFailureReason",
)
