"""Bridges to external collaborators: HTTP, credential issuance, the anchoring
service and the stream-loading node."""

from witnessrelay.bridge.anchor_client import AnchorStatusClient, QueryError
from witnessrelay.bridge.credentials import (
    AuthError,
    CredentialIssuer,
    DidKeyCredentialIssuer,
)
from witnessrelay.bridge.http import HttpClient, HttpError, HttpTransportError
from witnessrelay.bridge.verifier import StreamVerifier, VerifyError

__all__ = [
    "AnchorStatusClient",
    "QueryError",
    "AuthError",
    "CredentialIssuer",
    "DidKeyCredentialIssuer",
    "HttpClient",
    "HttpError",
    "HttpTransportError",
    "StreamVerifier",
    "VerifyError",
]
