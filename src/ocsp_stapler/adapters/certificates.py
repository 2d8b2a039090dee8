"""
Certificate adapter — loads a lineage's leaf certificate and issuer chain.

Uses cryptography (PyCA) for PEM parsing and extension access. The issuer
is the chain certificate whose subject matches the leaf's issuer name,
falling back to the first certificate in chain.pem.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from cryptography import x509
from cryptography.x509.oid import AuthorityInformationAccessOID
from railway import ErrorCode
from railway.result import Result

from ocsp_stapler.domain.models import Lineage


@dataclass(frozen=True, slots=True)
class LineageCertificates:
    """Parsed certificates of one lineage."""

    leaf: x509.Certificate
    issuer: x509.Certificate
    chain: tuple[x509.Certificate, ...]


def load_lineage_certificates(lineage: Lineage) -> Result[LineageCertificates]:
    """Read cert.pem and chain.pem. Any read or parse error is a VALIDATION_ERROR."""
    return Result.from_computation(
        lambda: _load(lineage),
        ErrorCode.VALIDATION_ERROR,
        "unreadable certificate",
    )


def _load(lineage: Lineage) -> LineageCertificates:
    leaf = x509.load_pem_x509_certificate(lineage.cert_path.read_bytes())
    chain = tuple(x509.load_pem_x509_certificates(lineage.chain_path.read_bytes()))
    return LineageCertificates(leaf=leaf, issuer=select_issuer(leaf, chain), chain=chain)


def select_issuer(
    leaf: x509.Certificate, chain: tuple[x509.Certificate, ...]
) -> x509.Certificate:
    for candidate in chain:
        if candidate.subject == leaf.issuer:
            return candidate
    return chain[0]


def ensure_not_expired(
    certificates: LineageCertificates, now: datetime
) -> Result[LineageCertificates]:
    return Result.success(certificates).ensure(
        lambda certs: now < certs.leaf.not_valid_after_utc,
        ErrorCode.BUSINESS_RULE_ERROR,
        "leaf certificate expired",
    )


def ocsp_responder_url(leaf: x509.Certificate) -> str | None:
    """First OCSP URI from the Authority Information Access extension, if any."""
    try:
        aia = leaf.extensions.get_extension_for_class(x509.AuthorityInformationAccess)
    except x509.ExtensionNotFound:
        return None
    for description in aia.value:
        if (
            description.access_method == AuthorityInformationAccessOID.OCSP
            and isinstance(description.access_location, x509.UniformResourceIdentifier)
        ):
            return description.access_location.value
    return None
