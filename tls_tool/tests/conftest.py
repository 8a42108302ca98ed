"""Test fixtures for tls_tool tests."""

from collections.abc import Generator
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from tls_tool.lib.cert_utils import (
    generate_private_key,
    serialize_certificate,
    serialize_certificate_chain,
    serialize_private_key,
)
from tls_tool.lib.certificate_builder import CertificateBuilder
from tls_tool.lib.config import (
    CaCertificateConfig,
    CaConfig,
    ClientConfig,
    Defaults,
    NodeConfig,
    ToolConfig,
)
from tls_tool.lib.models import SubjectSpec
from tls_tool.lib.signing_context import SigningContext


@pytest.fixture
def temp_output_dir(tmp_path: Path) -> Path:
    """Return temporary directory for test output artifacts."""
    return tmp_path


@pytest.fixture
def defaults() -> Defaults:
    """Return defaults with small keys for fast tests."""
    return Defaults(key_size=2048, validity_days=30)


@pytest.fixture
def root_key() -> RSAPrivateKey:
    """Generate RSA private key for Root CA."""
    return generate_private_key(key_size=2048)


@pytest.fixture
def root_name() -> x509.Name:
    """Return test Root CA subject."""
    return x509.Name.from_rfc4514_string("CN=Test Root CA,OU=CA,O=Test Org,C=GB")


@pytest.fixture
def root_cert(root_key: RSAPrivateKey, root_name: x509.Name) -> x509.Certificate:
    """Generate self-signed Root CA certificate."""
    return CertificateBuilder.build_root_ca(
        subject=root_name,
        private_key=root_key,
        validity_days=365,
        serial_number=1,
        algorithm=hashes.SHA256(),
    )


@pytest.fixture
def root_context(
    temp_output_dir: Path,
    defaults: Defaults,
    root_cert: x509.Certificate,
    root_key: RSAPrivateKey,
) -> SigningContext:
    """Signing context with the Root CA as signer."""
    return SigningContext(
        target_directory=temp_output_dir,
        defaults=defaults,
        signing_certificate=root_cert,
        signing_private_key=root_key,
        root_ca_file=temp_output_dir / "root-ca.pem",
        first_serial=100,
    )


@pytest.fixture
def intermediate_key() -> RSAPrivateKey:
    """Generate RSA private key for Intermediate CA."""
    return generate_private_key(key_size=2048)


@pytest.fixture
def intermediate_cert(
    root_context: SigningContext,
    intermediate_key: RSAPrivateKey,
) -> x509.Certificate:
    """Generate Intermediate CA certificate signed by Root CA."""
    csr = CertificateBuilder.build_ca_request(
        x509.Name.from_rfc4514_string("CN=Test Signing CA,OU=CA,O=Test Org,C=GB"),
        intermediate_key,
        hashes.SHA256(),
    )
    return CertificateBuilder.issue_from_csr(root_context, csr, validity_days=365)


@pytest.fixture
def signing_context(
    root_context: SigningContext,
    intermediate_cert: x509.Certificate,
    intermediate_key: RSAPrivateKey,
) -> SigningContext:
    """Signing context with the Intermediate CA as signer and the root as trust anchor."""
    return root_context.with_signer(intermediate_cert, intermediate_key)


@pytest.fixture
def csr_context(temp_output_dir: Path, defaults: Defaults) -> SigningContext:
    """Signing context without a signer, as used for signing requests."""
    return SigningContext(target_directory=temp_output_dir, defaults=defaults)


@pytest.fixture
def node_spec() -> SubjectSpec:
    """Return subject spec of a node with a hostname and an IP address."""
    return SubjectSpec(
        name="node1",
        distinguished_name="CN=node1.example.com,OU=Ops,O=Test Org",
        key_size=2048,
        validity_days=30,
        addresses=["node1.example.com", "10.0.0.5"],
        registered_oid="1.2.3.4.5.5",
    )


@pytest.fixture
def client_spec() -> SubjectSpec:
    """Return subject spec of an API client."""
    return SubjectSpec(
        name="client1",
        distinguished_name="CN=client1",
        key_size=2048,
        validity_days=30,
    )


@pytest.fixture
def ca_files_on_disk(
    temp_output_dir: Path,
    root_key: RSAPrivateKey,
    root_cert: x509.Certificate,
    intermediate_key: RSAPrivateKey,
    intermediate_cert: x509.Certificate,
) -> Generator[Path]:
    """Write CA files to disk and return the target directory.

    Creates:
        {temp_dir}/root-ca.pem
        {temp_dir}/root-ca.key
        {temp_dir}/signing-ca.pem
        {temp_dir}/signing-ca.key
    """
    (temp_output_dir / "root-ca.pem").write_bytes(serialize_certificate(root_cert))
    (temp_output_dir / "root-ca.key").write_bytes(serialize_private_key(root_key))
    (temp_output_dir / "signing-ca.pem").write_bytes(
        serialize_certificate_chain(intermediate_cert, root_cert)
    )
    (temp_output_dir / "signing-ca.key").write_bytes(serialize_private_key(intermediate_key))

    yield temp_output_dir


@pytest.fixture
def tool_config(defaults: Defaults) -> ToolConfig:
    """Return configuration with root + intermediate CA, one node and one client."""
    return ToolConfig(
        ca=CaConfig(
            root=CaCertificateConfig(dn="CN=Test Root CA,O=Test Org", key_size=2048),
            intermediate=CaCertificateConfig(dn="CN=Test Signing CA,O=Test Org", key_size=2048),
        ),
        defaults=defaults,
        nodes=[
            NodeConfig(
                name="node1",
                dn="CN=node1.example.com,OU=Ops,O=Test Org",
                dns=["node1.example.com"],
                ip=["10.0.0.5"],
            )
        ],
        clients=[ClientConfig(name="client1", dn="CN=client1")],
    )
