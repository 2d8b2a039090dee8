"""
OCSP responder adapter — request, verify and stage a fresh response via httpx.

Adapter layer — implements the ResponderClient port:

  load cert.pem + chain.pem
    → leaf not expired            (no request otherwise)
    → responder URL               (override, else AIA OCSP URI)
    → POST application/ocsp-request (no nonce)
    → write raw bytes to the private work area
    → verify against the issuer   (ocsp_verifier)
    → certificate status "good"

Retry/backoff via tenacity on transient errors (network, timeout).
All HTTP, parse and verification errors are captured into Result
failures — no exceptions leak to the pipeline.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

import httpx
import structlog
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.x509 import ocsp
from railway import ErrorCode
from railway.result import Result
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ocsp_stapler.adapters.certificates import (
    LineageCertificates,
    ensure_not_expired,
    load_lineage_certificates,
    ocsp_responder_url,
)
from ocsp_stapler.adapters.ocsp_verifier import VerifiedResponse, verify_ocsp_response
from ocsp_stapler.domain.models import FetchedStaple, Lineage

log = structlog.get_logger()

OCSP_REQUEST_CONTENT_TYPE = "application/ocsp-request"
OCSP_RESPONSE_CONTENT_TYPE = "application/ocsp-response"


def _utc_now() -> datetime:
    return datetime.now(UTC)


class HttpOcspResponderClient:
    """
    Fetch OCSP responses over HTTP POST.

    Implements the ResponderClient port.
    Uses tenacity retry on transient network errors only.
    """

    def __init__(
        self,
        timeout: int = 10,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._timeout = timeout
        self._clock = clock

    def fetch(self, lineage: Lineage, workdir: Path) -> Result[FetchedStaple]:
        """
        Obtain a verified "good" response for the lineage, staged in workdir.

        Failure messages are short tokens suitable for the report
        ("leaf certificate expired", "revoked", "OCSP request failed", ...);
        the underlying exception carries the full diagnostic.
        """
        now = self._clock()
        return (
            load_lineage_certificates(lineage)
            .flat_map(lambda certs: ensure_not_expired(certs, now))
            .flat_map(lambda certs: self._request_and_verify(lineage, certs, workdir, now))
        )

    def _request_and_verify(
        self,
        lineage: Lineage,
        certificates: LineageCertificates,
        workdir: Path,
        now: datetime,
    ) -> Result[FetchedStaple]:
        staged = workdir / lineage.staple_filename
        return (
            self._resolve_url(lineage, certificates)
            .flat_map(lambda url: self._request(url, certificates))
            .flat_map(lambda raw: self._stage(raw, staged))
            .flat_map(lambda raw: verify_ocsp_response(raw, certificates, now))
            .flat_map(_ensure_good)
            .map(lambda verified: FetchedStaple(lineage, staged, verified.validity))
        )

    @staticmethod
    def _resolve_url(lineage: Lineage, certificates: LineageCertificates) -> Result[str]:
        if lineage.responder_url:
            return Result.success(lineage.responder_url)
        return Result.from_optional(
            ocsp_responder_url(certificates.leaf),
            "no OCSP responder URL",
            ErrorCode.NOT_FOUND,
        )

    def _request(self, url: str, certificates: LineageCertificates) -> Result[bytes]:
        return Result.from_computation(
            lambda: self._do_request(url, build_ocsp_request(certificates)),
            ErrorCode.EXTERNAL_SERVICE_ERROR,
            "OCSP request failed",
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=0.1, max=30),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
        reraise=True,
    )
    def _do_request(self, url: str, body: bytes) -> bytes:
        """HTTP POST with retry — exceptions caught by from_computation."""
        with httpx.Client(timeout=self._timeout) as client:
            response = client.post(
                url,
                content=body,
                headers={
                    "Content-Type": OCSP_REQUEST_CONTENT_TYPE,
                    "Accept": OCSP_RESPONSE_CONTENT_TYPE,
                },
            )
            response.raise_for_status()
            data = response.content
            log.info("ocsp.response_received", url=url, size_bytes=len(data))
            return data

    @staticmethod
    def _stage(raw: bytes, path: Path) -> Result[bytes]:
        """Write the unverified response into the private work area."""

        def write() -> bytes:
            path.write_bytes(raw)
            return raw

        return Result.from_computation(
            write,
            ErrorCode.TECHNICAL_ERROR,
            "cannot write temporary response file",
        )


def build_ocsp_request(certificates: LineageCertificates) -> bytes:
    """DER-encoded OCSP request with a SHA-1 CertID and no nonce extension."""
    request = (
        ocsp.OCSPRequestBuilder()
        .add_certificate(certificates.leaf, certificates.issuer, hashes.SHA1())
        .build()
    )
    return request.public_bytes(serialization.Encoding.DER)


def _ensure_good(verified: VerifiedResponse) -> Result[VerifiedResponse]:
    if verified.status is ocsp.OCSPCertStatus.GOOD:
        return Result.success(verified)
    detail = verified.status_token
    if verified.revocation_time is not None:
        detail += f" since {verified.revocation_time.isoformat()}"
    if verified.revocation_reason is not None:
        detail += f" ({verified.revocation_reason.value})"
    return Result.failure(
        ErrorCode.BUSINESS_RULE_ERROR,
        verified.status_token,
        _CertificateStatusError(detail),
    )


class _CertificateStatusError(Exception):
    """Carries the responder's non-good status details for verbose reports."""
