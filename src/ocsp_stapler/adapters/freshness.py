"""
Freshness evaluator — decides whether a published staple can be kept.

Implements the FreshnessEvaluator port. Fails open: every problem with the
cached staple (missing, unreadable, unverifiable, not "good", no
nextUpdate) answers "not fresh" so the pipeline fetches a new one.

The half-life rule lives on StapleValidity.is_fresh(): a staple is kept
only while less than half of its thisUpdate → nextUpdate window has
elapsed, leaving slack for missed runs and slow responders.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

import structlog
from cryptography.x509 import ocsp
from railway import ErrorCode
from railway.result import Result

from ocsp_stapler.adapters.certificates import load_lineage_certificates
from ocsp_stapler.adapters.ocsp_verifier import VerifiedResponse, verify_ocsp_response
from ocsp_stapler.domain.models import Lineage
from ocsp_stapler.domain.ports import StapleStore

log = structlog.get_logger()


def _utc_now() -> datetime:
    return datetime.now(UTC)


class StapleFreshnessEvaluator:
    """Checks the staple currently published in a StapleStore."""

    def __init__(
        self,
        store: StapleStore,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._store = store
        self._clock = clock

    def is_fresh(self, lineage: Lineage) -> bool:
        now = self._clock()
        result = (
            self._read(lineage)
            .flat_map(
                lambda raw: load_lineage_certificates(lineage).flat_map(
                    lambda certs: verify_ocsp_response(raw, certs, now)
                )
            )
            .ensure(
                lambda verified: verified.status is ocsp.OCSPCertStatus.GOOD,
                ErrorCode.BUSINESS_RULE_ERROR,
                "cached staple is not good",
            )
            .ensure(
                lambda verified: verified.validity.is_fresh(now),
                ErrorCode.BUSINESS_RULE_ERROR,
                "cached staple is past half of its lifetime",
            )
        )
        return result.either(
            on_success=lambda verified: self._log_fresh(lineage, verified),
            on_failure=lambda err: self._log_stale(lineage, err.detail()),
        )

    def _read(self, lineage: Lineage) -> Result[bytes]:
        path = self._store.staple_path(lineage)
        if not path.is_file():
            return Result.failure(ErrorCode.NOT_FOUND, "no staple file")
        return Result.from_computation(
            path.read_bytes,
            ErrorCode.TECHNICAL_ERROR,
            "unreadable staple file",
        )

    @staticmethod
    def _log_fresh(lineage: Lineage, verified: VerifiedResponse) -> bool:
        log.debug(
            "freshness.fresh",
            lineage=lineage.name,
            this_update=verified.validity.this_update.isoformat(),
            refresh_after=str(verified.validity.refresh_after()),
        )
        return True

    @staticmethod
    def _log_stale(lineage: Lineage, reason: str) -> bool:
        log.debug("freshness.not_fresh", lineage=lineage.name, reason=reason)
        return False
