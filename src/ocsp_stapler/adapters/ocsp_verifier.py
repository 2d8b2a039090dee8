"""
OCSP response verification — signature, CertID binding and validity times.

Adapter layer — uses cryptography (PyCA) to check a DER-encoded OCSP
response against a lineage's leaf certificate and issuer:

  raw bytes
    → load_der_ocsp_response()          (parse)
    → response_status == SUCCESSFUL     (protocol)
    → single response for our CertID    (binding: serial + issuer hashes)
    → signer = issuer or delegated responder issued by it with id-kp-OCSPSigning
    → signature over tbsResponseData    (RSA PKCS#1 v1.5, ECDSA, EdDSA)
    → thisUpdate / nextUpdate around now

Both the freshness check of a cached staple and the acceptance of a newly
fetched response go through verify_ocsp_response(), so a staple on disk
is held to the same standard it was installed under.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, ed448, ed25519, padding, rsa
from cryptography.x509 import ocsp
from cryptography.x509.oid import ExtendedKeyUsageOID
from railway import ErrorCode
from railway.result import Result

from ocsp_stapler.adapters.certificates import LineageCertificates
from ocsp_stapler.domain.models import StapleValidity

# Tolerated clock skew between this host and the responder.
CLOCK_SKEW = timedelta(minutes=5)


@dataclass(frozen=True, slots=True)
class VerifiedResponse:
    """The parts of a verified OCSP response the lifecycle cares about."""

    status: ocsp.OCSPCertStatus
    validity: StapleValidity
    revocation_time: datetime | None = None
    revocation_reason: x509.ReasonFlags | None = None

    @property
    def status_token(self) -> str:
        """Lowercase status name: "good", "revoked" or "unknown"."""
        return self.status.name.lower()


class ResponseVerificationError(ValueError):
    """Raised inside verification steps; captured into a Result failure."""


def verify_ocsp_response(
    raw: bytes,
    certificates: LineageCertificates,
    now: datetime,
) -> Result[VerifiedResponse]:
    """
    Verify a raw OCSP response for the lineage's leaf certificate.

    Returns Result[VerifiedResponse] with whatever certificate status the
    responder asserted; deciding what to do with "revoked" or "unknown"
    is up to the caller. Any parse, binding, signature or timing problem
    is a failure with message "response verification failed" and the
    cause attached as the exception.
    """
    return Result.from_computation(
        lambda: ocsp.load_der_ocsp_response(raw),
        ErrorCode.VALIDATION_ERROR,
        "unparsable OCSP response",
    ).flat_map(_ensure_successful).flat_map(
        lambda response: Result.from_computation(
            lambda: _verify(response, certificates, now),
            ErrorCode.VALIDATION_ERROR,
            "response verification failed",
        )
    )


def _ensure_successful(response: ocsp.OCSPResponse) -> Result[ocsp.OCSPResponse]:
    if response.response_status is not ocsp.OCSPResponseStatus.SUCCESSFUL:
        return Result.failure(
            ErrorCode.EXTERNAL_SERVICE_ERROR,
            "unsuccessful OCSP response",
            ResponseVerificationError(
                f"responder answered {response.response_status.name}"
            ),
        )
    return Result.success(response)


def _verify(
    response: ocsp.OCSPResponse,
    certificates: LineageCertificates,
    now: datetime,
) -> VerifiedResponse:
    single = _matching_single_response(response, certificates)
    signer = _find_signer(response, certificates.issuer, now)
    _verify_signature(
        signer.public_key(),
        response.signature,
        response.tbs_response_bytes,
        response.signature_hash_algorithm,
    )
    validity = StapleValidity(
        this_update=single.this_update_utc,
        next_update=single.next_update_utc,
    )
    _check_times(validity, now)
    return VerifiedResponse(
        status=single.certificate_status,
        validity=validity,
        revocation_time=single.revocation_time_utc,
        revocation_reason=single.revocation_reason,
    )


def _matching_single_response(
    response: ocsp.OCSPResponse,
    certificates: LineageCertificates,
) -> ocsp.OCSPSingleResponse:
    for single in response.responses:
        expected = (
            ocsp.OCSPRequestBuilder()
            .add_certificate(certificates.leaf, certificates.issuer, single.hash_algorithm)
            .build()
        )
        if (
            single.serial_number == expected.serial_number
            and single.issuer_name_hash == expected.issuer_name_hash
            and single.issuer_key_hash == expected.issuer_key_hash
        ):
            return single
    raise ResponseVerificationError("response does not cover this certificate")


def _find_signer(
    response: ocsp.OCSPResponse,
    issuer: x509.Certificate,
    now: datetime,
) -> x509.Certificate:
    """
    Identify the certificate that signed the response.

    Either the issuer itself, or a delegated responder certificate embedded
    in the response that the issuer signed directly, that carries the
    OCSP-signing extended key usage and that is valid at `now`.
    """
    if _matches_responder_id(response, issuer):
        return issuer
    for candidate in response.certificates:
        if not _matches_responder_id(response, candidate):
            continue
        try:
            candidate.verify_directly_issued_by(issuer)
        except (ValueError, TypeError, InvalidSignature) as e:
            raise ResponseVerificationError(
                "responder certificate is not issued by the certificate issuer"
            ) from e
        if not _has_ocsp_signing_usage(candidate):
            raise ResponseVerificationError(
                "responder certificate lacks the OCSP signing extended key usage"
            )
        if not (
            candidate.not_valid_before_utc - CLOCK_SKEW
            <= now
            <= candidate.not_valid_after_utc + CLOCK_SKEW
        ):
            raise ResponseVerificationError(
                "responder certificate is outside its validity period"
            )
        return candidate
    raise ResponseVerificationError("no trusted certificate matches the responder ID")


def _matches_responder_id(response: ocsp.OCSPResponse, cert: x509.Certificate) -> bool:
    if response.responder_key_hash is not None:
        key_id = x509.SubjectKeyIdentifier.from_public_key(cert.public_key())  # type: ignore[arg-type]
        return key_id.digest == response.responder_key_hash
    return response.responder_name == cert.subject


def _has_ocsp_signing_usage(cert: x509.Certificate) -> bool:
    try:
        usage = cert.extensions.get_extension_for_class(x509.ExtendedKeyUsage)
    except x509.ExtensionNotFound:
        return False
    return ExtendedKeyUsageOID.OCSP_SIGNING in usage.value


def _verify_signature(
    public_key: object,
    signature: bytes,
    data: bytes,
    algorithm: hashes.HashAlgorithm | None,
) -> None:
    """Raise InvalidSignature (or ResponseVerificationError) unless the signature checks out."""
    match public_key:
        case rsa.RSAPublicKey() if algorithm is not None:
            public_key.verify(signature, data, padding.PKCS1v15(), algorithm)
        case ec.EllipticCurvePublicKey() if algorithm is not None:
            public_key.verify(signature, data, ec.ECDSA(algorithm))
        case ed25519.Ed25519PublicKey() | ed448.Ed448PublicKey():
            public_key.verify(signature, data)
        case _:
            raise ResponseVerificationError(
                f"unsupported responder key type {type(public_key).__name__}"
            )


def _check_times(validity: StapleValidity, now: datetime) -> None:
    if validity.this_update > now + CLOCK_SKEW:
        raise ResponseVerificationError("response thisUpdate is in the future")
    if validity.next_update is not None and validity.next_update < now - CLOCK_SKEW:
        raise ResponseVerificationError("response nextUpdate has passed")
