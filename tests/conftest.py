"""
Shared test fixtures and helpers for the ocsp-stapler test suite.

Provides a throwaway PKI built with cryptography: an EC certificate
authority, a delegated OCSP responder it issued, leaf certificates with an
AIA OCSP URI, certbot-style lineage directories (cert.pem + chain.pem),
and signed OCSP responses for any status and validity window.

Nothing touches the network and no fixture files are checked in: every
certificate is generated per test.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509 import ocsp
from cryptography.x509.oid import AuthorityInformationAccessOID, ExtendedKeyUsageOID, NameOID

from ocsp_stapler.domain.models import CERT_FILENAME, CHAIN_FILENAME, Lineage

FIXED_NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)
OCSP_URL = "http://ocsp.test.invalid"


def _name(common_name: str) -> x509.Name:
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])


def _naive(value: datetime | None) -> datetime | None:
    """OCSP builders take naive UTC datetimes."""
    if value is None:
        return None
    return value.astimezone(UTC).replace(tzinfo=None)


def _pem(cert: x509.Certificate) -> bytes:
    return cert.public_bytes(serialization.Encoding.PEM)


class Pki:
    """A miniature certificate authority with an OCSP responder."""

    def __init__(self, now: datetime) -> None:
        self.now = now.replace(microsecond=0)
        self.ca_key = ec.generate_private_key(ec.SECP256R1())
        self.ca_cert = self._self_signed("Test Root CA", self.ca_key, ca=True)
        self.responder_key = ec.generate_private_key(ec.SECP256R1())
        self.responder_cert = self._issue(
            "Test OCSP Responder",
            self.responder_key.public_key(),
            not_after=self.now + timedelta(days=365),
            extended_usage=[ExtendedKeyUsageOID.OCSP_SIGNING],
        )
        self.expired_responder_cert = self._issue(
            "Expired OCSP Responder",
            self.responder_key.public_key(),
            not_after=self.now - timedelta(days=1),
            extended_usage=[ExtendedKeyUsageOID.OCSP_SIGNING],
        )

    # ─────────────────────── Certificates ───────────────────────

    def _self_signed(self, common_name: str, key: ec.EllipticCurvePrivateKey, ca: bool) -> x509.Certificate:
        return (
            x509.CertificateBuilder()
            .subject_name(_name(common_name))
            .issuer_name(_name(common_name))
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(self.now - timedelta(days=365))
            .not_valid_after(self.now + timedelta(days=3650))
            .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
            .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
            .sign(key, hashes.SHA256())
        )

    def _issue(
        self,
        common_name: str,
        public_key: ec.EllipticCurvePublicKey,
        not_after: datetime,
        ocsp_url: str | None = None,
        extended_usage: list[x509.ObjectIdentifier] | None = None,
    ) -> x509.Certificate:
        builder = (
            x509.CertificateBuilder()
            .subject_name(_name(common_name))
            .issuer_name(self.ca_cert.subject)
            .public_key(public_key)
            .serial_number(x509.random_serial_number())
            .not_valid_before(min(self.now - timedelta(days=30), not_after - timedelta(days=1)))
            .not_valid_after(not_after)
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        )
        if ocsp_url is not None:
            builder = builder.add_extension(
                x509.AuthorityInformationAccess(
                    [
                        x509.AccessDescription(
                            AuthorityInformationAccessOID.OCSP,
                            x509.UniformResourceIdentifier(ocsp_url),
                        )
                    ]
                ),
                critical=False,
            )
        if extended_usage:
            builder = builder.add_extension(x509.ExtendedKeyUsage(extended_usage), critical=False)
        return builder.sign(self.ca_key, hashes.SHA256())

    def issue_leaf(
        self,
        common_name: str = "www.example.test",
        not_after: datetime | None = None,
        ocsp_url: str | None = OCSP_URL,
    ) -> x509.Certificate:
        """Leaf certificate signed by the CA; valid for 60 days by default."""
        key = ec.generate_private_key(ec.SECP256R1())
        return self._issue(
            common_name,
            key.public_key(),
            not_after=not_after or self.now + timedelta(days=60),
            ocsp_url=ocsp_url,
        )

    def write_lineage(
        self,
        root: Path,
        name: str,
        leaf: x509.Certificate | None = None,
    ) -> Lineage:
        """Create <root>/<name>/cert.pem and chain.pem like certbot's live directory."""
        path = root / name
        path.mkdir(parents=True, exist_ok=True)
        (path / CERT_FILENAME).write_bytes(_pem(leaf or self.issue_leaf(f"{name}.test")))
        (path / CHAIN_FILENAME).write_bytes(_pem(self.ca_cert))
        return Lineage(name=name, path=path)

    # ─────────────────────── OCSP responses ───────────────────────

    def ocsp_response(
        self,
        leaf: x509.Certificate,
        status: ocsp.OCSPCertStatus = ocsp.OCSPCertStatus.GOOD,
        this_update: datetime | None = None,
        lifetime: timedelta | None = timedelta(days=7),
        signer: str = "issuer",
        revocation_reason: x509.ReasonFlags | None = None,
    ) -> bytes:
        """
        DER-encoded OCSP response for `leaf`.

        thisUpdate defaults to now - 1h and nextUpdate to thisUpdate +
        lifetime; lifetime=None leaves nextUpdate out. `signer` is "issuer",
        "delegated" (the CA's OCSP responder certificate, embedded),
        "expired" (the same responder key under a lapsed certificate) or
        "stranger" (a self-signed key the CA never certified, embedded).
        """
        this_update = this_update or self.now - timedelta(hours=1)
        next_update = this_update + lifetime if lifetime is not None else None
        revoked = status is ocsp.OCSPCertStatus.REVOKED
        builder = ocsp.OCSPResponseBuilder().add_response(
            cert=leaf,
            issuer=self.ca_cert,
            algorithm=hashes.SHA1(),
            cert_status=status,
            this_update=_naive(this_update),
            next_update=_naive(next_update),
            revocation_time=_naive(this_update - timedelta(days=1)) if revoked else None,
            revocation_reason=revocation_reason if revoked else None,
        )
        match signer:
            case "issuer":
                key, cert, embedded = self.ca_key, self.ca_cert, []
            case "delegated":
                key, cert = self.responder_key, self.responder_cert
                embedded = [self.responder_cert]
            case "expired":
                key, cert = self.responder_key, self.expired_responder_cert
                embedded = [self.expired_responder_cert]
            case "stranger":
                key = ec.generate_private_key(ec.SECP256R1())
                cert = self._self_signed("Impostor Responder", key, ca=False)
                embedded = [cert]
            case _:
                raise ValueError(f"unknown signer {signer!r}")
        builder = builder.responder_id(ocsp.OCSPResponderEncoding.HASH, cert)
        if embedded:
            builder = builder.certificates(embedded)
        response = builder.sign(key, hashes.SHA256())
        return response.public_bytes(serialization.Encoding.DER)

    @staticmethod
    def unsuccessful_response(
        status: ocsp.OCSPResponseStatus = ocsp.OCSPResponseStatus.TRY_LATER,
    ) -> bytes:
        response = ocsp.OCSPResponseBuilder.build_unsuccessful(status)
        return response.public_bytes(serialization.Encoding.DER)

    def leaf_of(self, lineage: Lineage) -> x509.Certificate:
        return x509.load_pem_x509_certificate(lineage.cert_path.read_bytes())


@pytest.fixture(scope="session")
def pki() -> Pki:
    """PKI anchored at a fixed instant, for tests that inject a clock."""
    return Pki(FIXED_NOW)


@pytest.fixture(scope="session")
def live_pki() -> Pki:
    """PKI anchored at the real current time, for end-to-end runs."""
    return Pki(datetime.now(UTC))


@pytest.fixture()
def now(pki: Pki) -> datetime:
    return pki.now
