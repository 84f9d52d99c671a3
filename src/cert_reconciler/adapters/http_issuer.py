"""
HTTP issuer adapter — delegate issuance to a remote signing service via httpx.

Adapter layer — implements the IssuerBackend port against a JSON API:

  POST {url}/prepare  body: {name, namespace, domains}           → 2xx
  POST {url}/issue    body: {name, namespace, domains}
                      → {"certificate": "<PEM>", "private_key": "<PEM>"}

Retry/backoff via tenacity on transient errors (network, timeout).
All HTTP errors are captured into Result failures — no exceptions
leak to the business logic layer.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from railway import ErrorCode
from railway.result import Result
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from cert_reconciler.domain.models import CertificateRequest, IssuedCredential

log = structlog.get_logger()

_transient_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=0.1, max=30),
    retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
    reraise=True,
)


def _request_body(request: CertificateRequest) -> dict[str, Any]:
    return {
        "name": request.name,
        "namespace": request.namespace,
        "domains": list(request.domains),
    }


class HttpIssuer:
    """
    Obtain certificates from a signing service over HTTP.

    Implements the IssuerBackend port.
    Uses tenacity retry on transient network errors only.
    """

    def __init__(self, url: str, timeout: int = 30) -> None:
        self._url = url.rstrip("/")
        self._timeout = timeout

    def prepare(self, request: CertificateRequest) -> Result[CertificateRequest]:
        """
        Announce the request to the signing service before any credential read.

        Returns Result[CertificateRequest] (the same request) on success,
        or Result.failure(EXTERNAL_SERVICE_ERROR, ...) on failure.
        """
        return Result.from_computation(
            lambda: self._do_prepare(request),
            ErrorCode.EXTERNAL_SERVICE_ERROR,
            "Issuer prepare call failed",
        )

    def issue(self, request: CertificateRequest) -> Result[IssuedCredential]:
        """
        Request a signed certificate and its private key.

        Returns Result[IssuedCredential] with PEM bytes on success,
        or Result.failure(EXTERNAL_SERVICE_ERROR, ...) on failure.
        """
        return Result.from_computation(
            lambda: self._do_issue(request),
            ErrorCode.EXTERNAL_SERVICE_ERROR,
            "Issuer issue call failed",
        )

    @_transient_retry
    def _do_prepare(self, request: CertificateRequest) -> CertificateRequest:
        """HTTP call with retry — exceptions caught by from_computation."""
        with httpx.Client(timeout=self._timeout) as client:
            response = client.post(f"{self._url}/prepare", json=_request_body(request))
            response.raise_for_status()
            log.info("http_issuer.prepared", certificate=request.qualified_name)
            return request

    @_transient_retry
    def _do_issue(self, request: CertificateRequest) -> IssuedCredential:
        """HTTP call with retry — exceptions caught by from_computation."""
        with httpx.Client(timeout=self._timeout) as client:
            response = client.post(f"{self._url}/issue", json=_request_body(request))
            response.raise_for_status()
            body = response.json()
            issued = IssuedCredential(
                certificate=body["certificate"].encode("ascii"),
                private_key=body["private_key"].encode("ascii"),
            )
            log.info(
                "http_issuer.issued",
                certificate=request.qualified_name,
                size_bytes=len(issued.certificate),
            )
            return issued
