"""Certificate builder for X.509 certificates and PKCS#10 signing requests."""

from datetime import UTC, datetime, timedelta

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey
from cryptography.x509.oid import ExtensionOID

from .cert_utils import generate_private_key, validate_csr_signature
from .dn import create_subject
from .exceptions import CertificateBuildError
from .extension_policy import ExtensionPolicy, policy_for
from .models import BuildMode, CertificateArtifact, CertificateRole, SubjectSpec
from .signing_context import SigningContext

_BUILD_ERRORS = (ValueError, TypeError, UnsupportedAlgorithm)
_KEY_IDENTIFIER_OIDS = (
    ExtensionOID.AUTHORITY_KEY_IDENTIFIER,
    ExtensionOID.SUBJECT_KEY_IDENTIFIER,
)


def _sign_certificate(
    subject: x509.Name,
    issuer: x509.Name,
    public_key: RSAPublicKey,
    serial_number: int,
    validity_days: int,
    extensions: list[x509.Extension],
    signing_key: RSAPrivateKey,
    algorithm: hashes.HashAlgorithm,
) -> x509.Certificate:
    not_before = datetime.now(UTC)
    not_after = not_before + timedelta(days=validity_days)

    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(public_key)
        .serial_number(serial_number)
        .not_valid_before(not_before)
        .not_valid_after(not_after)
    )
    for extension in extensions:
        builder = builder.add_extension(extension.value, critical=extension.critical)

    return builder.sign(signing_key, algorithm)


def _build_csr(
    subject: x509.Name,
    extensions: list[x509.Extension],
    private_key: RSAPrivateKey,
    algorithm: hashes.HashAlgorithm,
) -> x509.CertificateSigningRequest:
    # Extensions added here are encoded as the PKCS#9 extensionRequest attribute
    builder = x509.CertificateSigningRequestBuilder().subject_name(subject)
    for extension in extensions:
        builder = builder.add_extension(extension.value, critical=extension.critical)
    return builder.sign(private_key, algorithm)


class CertificateBuilder:
    """Builds CA, node and client certificates and their signing requests."""

    @staticmethod
    def issue(
        context: SigningContext,
        subject: SubjectSpec,
        policy: ExtensionPolicy,
        mode: BuildMode,
        san_names: list[x509.GeneralName] | None = None,
    ) -> CertificateArtifact:
        """Generate a fresh key pair and a signed certificate or a CSR for it.

        Signed certificates are issued by the context's signer with the next
        serial number and carry authority/subject key identifiers. Signing
        requests are self-signed with the new key, allocate no serial and
        carry the remaining extensions as an extension request.

        Args:
            context: Signing context of the run
            subject: Entity name, DN template, key size and validity
            policy: Extension template for the certificate role
            mode: Issue now or produce a signing request
            san_names: Subject alternative names, used when the policy includes them

        Returns:
            CertificateArtifact holding the new private key and certificate or CSR

        Raises:
            ConfigurationError: If the DN is invalid or no signer is available
            CertificateBuildError: If key generation, encoding or signing fails
        """
        name = create_subject(subject.distinguished_name, subject.name, policy.role, mode)
        if mode is BuildMode.SIGNED_CERTIFICATE:
            issuer_cert, issuer_key = context.signer()

        try:
            private_key = generate_private_key(subject.key_size)

            if mode is BuildMode.SIGNING_REQUEST:
                extensions = policy.build_extensions(san_names)
                csr = _build_csr(name, extensions, private_key, context.hash_algorithm)
                return CertificateArtifact(
                    role=policy.role,
                    mode=mode,
                    private_key=private_key,
                    extensions=extensions,
                    csr=csr,
                )

            extensions = policy.build_extensions(
                san_names,
                subject_public_key=private_key.public_key(),
                issuer_public_key=issuer_cert.public_key(),
            )
            certificate = _sign_certificate(
                subject=name,
                issuer=issuer_cert.subject,
                public_key=private_key.public_key(),
                serial_number=context.next_serial(),
                validity_days=subject.validity_days,
                extensions=extensions,
                signing_key=issuer_key,
                algorithm=context.hash_algorithm,
            )
        except _BUILD_ERRORS as e:
            raise CertificateBuildError(subject.name, policy.role.value, e) from e

        return CertificateArtifact(
            role=policy.role,
            mode=mode,
            private_key=private_key,
            extensions=extensions,
            certificate=certificate,
        )

    @staticmethod
    def build_root_ca(
        subject: x509.Name,
        private_key: RSAPrivateKey,
        validity_days: int,
        serial_number: int,
        algorithm: hashes.HashAlgorithm,
    ) -> x509.Certificate:
        """Build self-signed Root CA certificate.

        The authority key identifier refers to the root's own key.
        """
        public_key = private_key.public_key()
        extensions = policy_for(CertificateRole.ROOT_CA).build_extensions(
            subject_public_key=public_key, issuer_public_key=public_key
        )
        return _sign_certificate(
            subject=subject,
            issuer=subject,
            public_key=public_key,
            serial_number=serial_number,
            validity_days=validity_days,
            extensions=extensions,
            signing_key=private_key,
            algorithm=algorithm,
        )

    @staticmethod
    def build_ca_request(
        subject: x509.Name,
        private_key: RSAPrivateKey,
        algorithm: hashes.HashAlgorithm,
    ) -> x509.CertificateSigningRequest:
        """Build the signing request for an intermediate CA."""
        extensions = policy_for(CertificateRole.INTERMEDIATE_CA).build_extensions()
        return _build_csr(subject, extensions, private_key, algorithm)

    @staticmethod
    def issue_from_csr(
        context: SigningContext,
        csr: x509.CertificateSigningRequest,
        validity_days: int,
        entity: str = "signing request",
    ) -> x509.Certificate:
        """Issue a certificate for a CSR, keeping its requested extensions.

        The CSR signature proves possession of the private key. Requested
        key identifiers are replaced by ones derived from the CSR key and
        the signer key.

        Raises:
            ConfigurationError: If the context has no signer
            CertificateBuildError: If the CSR signature is invalid or signing fails
        """
        issuer_cert, issuer_key = context.signer()

        try:
            if not validate_csr_signature(csr):
                raise ValueError("CSR signature validation failed")

            public_key = csr.public_key()
            if not isinstance(public_key, RSAPublicKey):
                raise ValueError("CSR public key must be RSA type")

            aki = x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_cert.public_key())
            ski = x509.SubjectKeyIdentifier.from_public_key(public_key)
            extensions = [
                x509.Extension(aki.oid, False, aki),
                x509.Extension(ski.oid, False, ski),
                *(ext for ext in csr.extensions if ext.oid not in _KEY_IDENTIFIER_OIDS),
            ]

            return _sign_certificate(
                subject=csr.subject,
                issuer=issuer_cert.subject,
                public_key=public_key,
                serial_number=context.next_serial(),
                validity_days=validity_days,
                extensions=extensions,
                signing_key=issuer_key,
                algorithm=context.hash_algorithm,
            )
        except _BUILD_ERRORS as e:
            raise CertificateBuildError(entity, "certificate from CSR", e) from e
