"""Key generation, PEM serialization and certificate verification helpers."""

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey


def generate_private_key(key_size: int = 2048) -> RSAPrivateKey:
    """Generate RSA private key with specified size."""
    return rsa.generate_private_key(
        public_exponent=65537,
        key_size=key_size,
    )


def serialize_private_key(key: RSAPrivateKey, password: str | None = None) -> bytes:
    """Serialize private key to PKCS8 PEM, encrypted when a password is given.

    Encrypted keys use the PKCS8 password-based container
    ("ENCRYPTED PRIVATE KEY"), readable by OpenSSL and JVM tooling.
    """
    if password:
        encryption: serialization.KeySerializationEncryption = (
            serialization.BestAvailableEncryption(password.encode("utf-8"))
        )
    else:
        encryption = serialization.NoEncryption()

    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=encryption,
    )


def deserialize_private_key(pem_data: bytes, password: str | None = None) -> RSAPrivateKey:
    """Deserialize private key from PEM bytes."""
    key = serialization.load_pem_private_key(
        pem_data, password=password.encode("utf-8") if password else None
    )
    if not isinstance(key, RSAPrivateKey):
        raise ValueError("expected RSA private key")
    return key


def serialize_certificate(cert: x509.Certificate) -> bytes:
    """Serialize certificate to PEM format."""
    return cert.public_bytes(serialization.Encoding.PEM)


def serialize_certificate_chain(cert: x509.Certificate, *chain: x509.Certificate) -> bytes:
    """Serialize a certificate followed by its issuer chain, leaf first."""
    return b"".join(serialize_certificate(c) for c in (cert, *chain))


def deserialize_certificate(pem_data: bytes) -> x509.Certificate:
    """Deserialize the first certificate from PEM bytes."""
    return x509.load_pem_x509_certificate(pem_data)


def deserialize_certificate_chain(pem_data: bytes) -> list[x509.Certificate]:
    """Deserialize every certificate in a PEM bundle, in file order."""
    return x509.load_pem_x509_certificates(pem_data)


def serialize_csr(csr: x509.CertificateSigningRequest) -> bytes:
    """Serialize CSR to PEM format."""
    return csr.public_bytes(serialization.Encoding.PEM)


def deserialize_csr(pem_data: bytes) -> x509.CertificateSigningRequest:
    """Deserialize CSR from PEM bytes."""
    return x509.load_pem_x509_csr(pem_data)


def get_certificate_serial_hex(cert: x509.Certificate) -> str:
    """Return certificate serial number as hex with colons (e.g., 3A:F2:B1:...)."""
    serial_hex = f"{cert.serial_number:X}"
    if len(serial_hex) % 2 != 0:
        serial_hex = "0" + serial_hex
    return ":".join(serial_hex[i : i + 2] for i in range(0, len(serial_hex), 2))


def validate_certificate_chain(cert: x509.Certificate, *issuers: x509.Certificate) -> bool:
    """Verify each certificate is directly issued by the next one in the list.

    Returns True if chain is valid, False otherwise.
    """
    chain = [cert, *issuers]
    try:
        for child, parent in zip(chain, chain[1:]):
            child.verify_directly_issued_by(parent)
    except (InvalidSignature, ValueError, TypeError):
        return False
    return True


def validate_csr_signature(csr: x509.CertificateSigningRequest) -> bool:
    """Verify CSR self-signature to prove private key possession."""
    try:
        return csr.is_signature_valid
    except ValueError:
        return False
