"""CA manager: load the signing CA from disk or create a new CA hierarchy."""

from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from .cert_utils import (
    deserialize_certificate,
    deserialize_private_key,
    generate_private_key,
    get_certificate_serial_hex,
    serialize_certificate,
    serialize_certificate_chain,
)
from .certificate_builder import CertificateBuilder
from .config import AUTO_PASSWORD, CaCertificateConfig, ToolConfig
from .dn import create_subject
from .exceptions import CertificateBuildError, ConfigurationError
from .logging_config import LOGGER
from .models import BootstrapResult, BuildMode, CertificateRole, OutputArtifact
from .output import (
    CA_README_HEADER,
    OutputArtifactWriter,
    key_artifact,
    password_note,
    resolve_password,
)
from .signing_context import SigningContext

ROOT_CA_FILE_BASE = "root-ca"
SIGNING_CA_FILE_BASE = "signing-ca"
CA_README_FILE = "root-ca.readme"
DEFAULT_CA_VALIDITY_DAYS = 3650


def _ca_password(ca_config: CaCertificateConfig) -> str | None:
    # CA keys only use their own password setting, never the leaf defaults
    if ca_config.pk_password is None or str(ca_config.pk_password).lower() in ("", "none"):
        return None
    if str(ca_config.pk_password).lower() == AUTO_PASSWORD:
        raise ConfigurationError(
            f"pkPassword is '{AUTO_PASSWORD}' for an existing CA; set it to the password "
            f"recorded in {CA_README_FILE}"
        )
    return str(ca_config.pk_password)


class CAManager:
    """Certificate Authority manager for the signing CA of a run."""

    def __init__(self, config: ToolConfig, target_directory: Path) -> None:
        self.config = config
        self.target_directory = target_directory

    def configured_file(self, configured: str | None, file_base: str, suffix: str) -> Path:
        """Resolve a CA file: the configured path with its suffix swapped, or the default name.

        Relative paths are taken relative to the target directory.
        """
        if configured:
            path = Path(configured).with_suffix(f".{suffix}")
            return path if path.is_absolute() else self.target_directory / path
        return self.target_directory / f"{file_base}.{suffix}"

    def _signer_config(self) -> tuple[CaCertificateConfig, str, Path]:
        """Pick the active signer and the trust-anchor file.

        With an intermediate configured, the intermediate signs and the root
        certificate file is the trust anchor. Without one, the root signs and
        is its own trust anchor.
        """
        ca = self.config.ca
        if ca.intermediate is not None:
            root_file = self.configured_file(
                ca.root.file if ca.root is not None else None, ROOT_CA_FILE_BASE, "pem"
            )
            return ca.intermediate, SIGNING_CA_FILE_BASE, root_file
        if ca.root is not None:
            root_file = self.configured_file(ca.root.file, ROOT_CA_FILE_BASE, "pem")
            return ca.root, ROOT_CA_FILE_BASE, root_file
        raise ConfigurationError("configuration ca.root or ca.intermediate is required")

    def load_authority(self, first_serial: int | None = None) -> SigningContext:
        """Load the signing CA key and certificate from disk.

        Raises:
            ConfigurationError: If no CA is configured or a file is missing or unreadable
        """
        signer_config, file_base, root_file = self._signer_config()
        key_file = self.configured_file(signer_config.file, file_base, "key")
        cert_file = self.configured_file(signer_config.file, file_base, "pem")

        private_key = self._read_private_key(key_file, _ca_password(signer_config))
        certificate = self._read_certificate(cert_file)

        if private_key.public_key().public_numbers() != certificate.public_key().public_numbers():
            raise ConfigurationError(
                f"private key {key_file} does not match certificate {cert_file}"
            )
        if not root_file.exists():
            LOGGER.warning("Root CA file %s does not exist", root_file)

        LOGGER.info(
            "Using signing certificate: %s (serial %s)",
            cert_file.resolve(),
            get_certificate_serial_hex(certificate),
        )
        return SigningContext(
            target_directory=self.target_directory,
            defaults=self.config.defaults,
            signing_certificate=certificate,
            signing_private_key=private_key,
            root_ca_file=root_file,
            first_serial=first_serial,
        )

    def create_authority(
        self, first_serial: int | None = None
    ) -> tuple[SigningContext, BootstrapResult]:
        """Create a self-signed root CA and, if configured, an intermediate CA.

        Generates:
            - root-ca.key / root-ca.pem
            - signing-ca.key / signing-ca.pem (certificate followed by the root)
            - root-ca.readme entries for automatically generated key passwords

        Returns:
            Signing context for the new signer and the written file paths

        Raises:
            ConfigurationError: If ca.root is missing or any CA file already exists
            CertificateBuildError: If key generation or signing fails
        """
        ca = self.config.ca
        if ca.root is None:
            raise ConfigurationError("configuration ca.root is required to create a CA")

        root_key_path = self.configured_file(ca.root.file, ROOT_CA_FILE_BASE, "key")
        root_cert_path = self.configured_file(ca.root.file, ROOT_CA_FILE_BASE, "pem")
        paths = [root_key_path, root_cert_path]
        if ca.intermediate is not None:
            signing_key_path = self.configured_file(
                ca.intermediate.file, SIGNING_CA_FILE_BASE, "key"
            )
            signing_cert_path = self.configured_file(
                ca.intermediate.file, SIGNING_CA_FILE_BASE, "pem"
            )
            paths += [signing_key_path, signing_cert_path]
        else:
            signing_key_path, signing_cert_path = root_key_path, root_cert_path

        writer = OutputArtifactWriter(self.target_directory)
        existing = writer.conflicts(paths)
        if existing:
            raise ConfigurationError(
                "CA files already exist: " + ", ".join(str(path) for path in existing)
            )

        context = SigningContext(
            target_directory=self.target_directory,
            defaults=self.config.defaults,
            root_ca_file=root_cert_path,
            first_serial=first_serial,
        )
        generated_length = self.config.defaults.generated_password_length

        root_password, root_auto = resolve_password(ca.root.pk_password, generated_length)
        root_key, root_cert = self._create_root(ca.root, context)
        artifacts = [
            key_artifact(root_key_path, root_key, root_password),
            OutputArtifact(root_cert_path, serialize_certificate(root_cert)),
        ]
        notes = [password_note(root_key_path, root_password)] if root_auto else []
        context = context.with_signer(root_cert, root_key)

        if ca.intermediate is not None:
            signing_password, signing_auto = resolve_password(
                ca.intermediate.pk_password, generated_length
            )
            signing_key, signing_cert = self._create_intermediate(ca.intermediate, context)
            artifacts += [
                key_artifact(signing_key_path, signing_key, signing_password),
                OutputArtifact(
                    signing_cert_path, serialize_certificate_chain(signing_cert, root_cert)
                ),
            ]
            if signing_auto:
                notes.append(password_note(signing_key_path, signing_password))
            context = context.with_signer(signing_cert, signing_key)

        writer.try_write_group("certificate authority", artifacts)
        for note in notes:
            writer.append_note(self.target_directory / CA_README_FILE, CA_README_HEADER, note)

        LOGGER.info("Created CA; signing certificate: %s", signing_cert_path)
        return context, BootstrapResult(
            root_key_path=root_key_path,
            root_cert_path=root_cert_path,
            signing_key_path=signing_key_path,
            signing_cert_path=signing_cert_path,
            password_auto_generated=bool(notes),
        )

    def csr_context(self) -> SigningContext:
        """Context without signer for signing-request-only runs."""
        return SigningContext(target_directory=self.target_directory, defaults=self.config.defaults)

    def _create_root(
        self, root_config: CaCertificateConfig, context: SigningContext
    ) -> tuple[RSAPrivateKey, x509.Certificate]:
        subject = create_subject(
            root_config.dn, ROOT_CA_FILE_BASE, CertificateRole.ROOT_CA, BuildMode.SIGNED_CERTIFICATE
        )
        try:
            root_key = generate_private_key(self.config.effective_key_size(root_config))
            root_cert = CertificateBuilder.build_root_ca(
                subject=subject,
                private_key=root_key,
                validity_days=root_config.validity_days or DEFAULT_CA_VALIDITY_DAYS,
                serial_number=context.next_serial(),
                algorithm=context.hash_algorithm,
            )
        except ValueError as e:
            raise CertificateBuildError(ROOT_CA_FILE_BASE, CertificateRole.ROOT_CA.value, e) from e
        return root_key, root_cert

    def _create_intermediate(
        self, intermediate_config: CaCertificateConfig, context: SigningContext
    ) -> tuple[RSAPrivateKey, x509.Certificate]:
        subject = create_subject(
            intermediate_config.dn,
            SIGNING_CA_FILE_BASE,
            CertificateRole.INTERMEDIATE_CA,
            BuildMode.SIGNED_CERTIFICATE,
        )
        try:
            signing_key = generate_private_key(self.config.effective_key_size(intermediate_config))
            csr = CertificateBuilder.build_ca_request(subject, signing_key, context.hash_algorithm)
        except ValueError as e:
            raise CertificateBuildError(
                SIGNING_CA_FILE_BASE, CertificateRole.INTERMEDIATE_CA.value, e
            ) from e

        signing_cert = CertificateBuilder.issue_from_csr(
            context,
            csr,
            intermediate_config.validity_days or DEFAULT_CA_VALIDITY_DAYS,
            entity=SIGNING_CA_FILE_BASE,
        )
        return signing_key, signing_cert

    @staticmethod
    def _read_private_key(path: Path, password: str | None) -> RSAPrivateKey:
        try:
            return deserialize_private_key(path.read_bytes(), password)
        except FileNotFoundError as e:
            raise ConfigurationError(f"CA private key not found: {path}") from e
        except (ValueError, TypeError) as e:
            raise ConfigurationError(f"cannot read CA private key {path}: {e}") from e

    @staticmethod
    def _read_certificate(path: Path) -> x509.Certificate:
        try:
            return deserialize_certificate(path.read_bytes())
        except FileNotFoundError as e:
            raise ConfigurationError(f"CA certificate not found: {path}") from e
        except ValueError as e:
            raise ConfigurationError(f"cannot read CA certificate {path}: {e}") from e
