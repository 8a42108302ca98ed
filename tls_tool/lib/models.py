"""Data models shared by the certificate generation engine."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey


class CertificateRole(Enum):
    ROOT_CA = "root CA certificate"
    INTERMEDIATE_CA = "intermediate CA certificate"
    NODE_TRANSPORT = "node transport certificate"
    NODE_HTTP = "node HTTP certificate"
    CLIENT = "client certificate"

    @property
    def dn_suffix(self) -> str:
        """Suffix used for the default CN when a DN carries none."""
        if self is CertificateRole.CLIENT:
            return "client"
        if self in (CertificateRole.NODE_TRANSPORT, CertificateRole.NODE_HTTP):
            return "node"
        return "ca"


class BuildMode(Enum):
    SIGNED_CERTIFICATE = "certificate"
    SIGNING_REQUEST = "csr"


class NodeState(Enum):
    """Per-node progress through certificate generation."""

    NOT_STARTED = "not started"
    TRANSPORT_ISSUED = "transport issued"
    HTTP_ISSUED = "http issued"
    HTTP_REUSED = "http reused"
    HTTP_SKIPPED_DISABLED = "http skipped (disabled)"
    CONFIG_EMITTED = "config emitted"


@dataclass
class SubjectSpec:
    """Everything the builder needs to know about one entity."""

    name: str
    distinguished_name: str | None
    key_size: int
    validity_days: int
    addresses: list[str] = field(default_factory=list)
    registered_oid: str | None = None


@dataclass
class CertificateArtifact:
    """Result of one builder invocation, held in memory until written."""

    role: CertificateRole
    mode: BuildMode
    private_key: RSAPrivateKey
    extensions: list[x509.Extension]
    certificate: x509.Certificate | None = None
    csr: x509.CertificateSigningRequest | None = None

    @property
    def serial_number(self) -> int | None:
        return self.certificate.serial_number if self.certificate is not None else None


@dataclass
class OutputArtifact:
    """A file to emit: PEM content and, for private keys, the password to encrypt under."""

    path: Path
    content: bytes
    password: str | None = None


@dataclass
class EntityFailure:
    entity: str
    error: str


@dataclass
class RunSummary:
    """Run-scoped counters returned by the generator."""

    certificates_generated: int = 0
    csrs_generated: int = 0
    password_auto_generated: bool = False
    completed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failures: list[EntityFailure] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        return 1 if self.failures else 0


@dataclass
class BootstrapResult:
    """Result of creating a root (and optional intermediate) CA."""

    root_key_path: Path
    root_cert_path: Path
    signing_key_path: Path
    signing_cert_path: Path
    password_auto_generated: bool = False
