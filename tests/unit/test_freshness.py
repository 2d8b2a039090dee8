"""
Unit tests for the freshness evaluator.

The evaluator reads the published staple through a real FileStapleStore
in a temporary directory and uses an injected clock.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest
from cryptography.x509 import ocsp

from ocsp_stapler.adapters.freshness import StapleFreshnessEvaluator
from ocsp_stapler.adapters.staple_store import FileStapleStore
from ocsp_stapler.domain.models import Lineage


@pytest.fixture()
def store(tmp_path: Path) -> FileStapleStore:
    output = tmp_path / "out"
    output.mkdir()
    return FileStapleStore(output)


@pytest.fixture()
def lineage(pki, tmp_path: Path) -> Lineage:
    return pki.write_lineage(tmp_path / "live", "example.com")


@pytest.fixture()
def evaluator(pki, store) -> StapleFreshnessEvaluator:
    return StapleFreshnessEvaluator(store, clock=lambda: pki.now)


def _publish(store: FileStapleStore, lineage: Lineage, raw: bytes) -> None:
    store.staple_path(lineage).write_bytes(raw)


class TestFreshStaple:
    def test_recent_good_staple_is_fresh(self, pki, store, lineage, evaluator) -> None:
        """
        GIVEN a verified "good" staple one hour into a 7-day window
        WHEN is_fresh is called
        THEN it is fresh.
        """
        _publish(store, lineage, pki.ocsp_response(pki.leaf_of(lineage)))

        assert evaluator.is_fresh(lineage)

    def test_delegated_responder_staple_is_fresh(self, pki, store, lineage, evaluator) -> None:
        _publish(store, lineage, pki.ocsp_response(pki.leaf_of(lineage), signer="delegated"))

        assert evaluator.is_fresh(lineage)


class TestStaleStaple:
    def test_past_half_life_is_not_fresh(self, pki, store, lineage, evaluator) -> None:
        """
        GIVEN a staple whose thisUpdate is 4 days ago with a 7-day window
        WHEN is_fresh is called
        THEN it is not fresh, although nextUpdate is still in the future.
        """
        raw = pki.ocsp_response(pki.leaf_of(lineage), this_update=pki.now - timedelta(days=4))
        _publish(store, lineage, raw)

        assert not evaluator.is_fresh(lineage)

    def test_ten_hour_window_six_hours_in(self, pki, store, lineage, evaluator) -> None:
        """
        GIVEN thisUpdate=T and nextUpdate=T+10h
        WHEN evaluated at T+6h
        THEN the staple is past its half-life and not fresh.
        """
        raw = pki.ocsp_response(
            pki.leaf_of(lineage),
            this_update=pki.now - timedelta(hours=6),
            lifetime=timedelta(hours=10),
        )
        _publish(store, lineage, raw)

        assert not evaluator.is_fresh(lineage)

    def test_missing_staple_is_not_fresh(self, lineage, evaluator) -> None:
        assert not evaluator.is_fresh(lineage)

    def test_corrupt_staple_is_not_fresh(self, store, lineage, evaluator) -> None:
        _publish(store, lineage, b"\x30\x03garbage")

        assert not evaluator.is_fresh(lineage)

    def test_revoked_staple_is_not_fresh(self, pki, store, lineage, evaluator) -> None:
        raw = pki.ocsp_response(pki.leaf_of(lineage), status=ocsp.OCSPCertStatus.REVOKED)
        _publish(store, lineage, raw)

        assert not evaluator.is_fresh(lineage)

    def test_staple_without_next_update_is_not_fresh(self, pki, store, lineage, evaluator) -> None:
        _publish(store, lineage, pki.ocsp_response(pki.leaf_of(lineage), lifetime=None))

        assert not evaluator.is_fresh(lineage)

    def test_staple_for_previous_certificate_is_not_fresh(self, pki, store, lineage, evaluator) -> None:
        """
        GIVEN a staple for an older certificate of the same lineage
        WHEN is_fresh is called
        THEN it is not fresh, because it does not cover the current leaf.
        """
        _publish(store, lineage, pki.ocsp_response(pki.issue_leaf("example.com.test")))

        assert not evaluator.is_fresh(lineage)

    def test_staple_from_expired_responder_is_not_fresh(self, pki, store, lineage, evaluator) -> None:
        _publish(store, lineage, pki.ocsp_response(pki.leaf_of(lineage), signer="expired"))

        assert not evaluator.is_fresh(lineage)

    def test_untrusted_staple_is_not_fresh(self, pki, store, lineage, evaluator) -> None:
        _publish(store, lineage, pki.ocsp_response(pki.leaf_of(lineage), signer="stranger"))

        assert not evaluator.is_fresh(lineage)
