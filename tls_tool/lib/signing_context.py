"""Signing context: active trust anchor, serial allocation and run-wide defaults."""

import itertools
import time
from collections.abc import Iterator
from dataclasses import dataclass, field, replace
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from .config import Defaults
from .exceptions import ConfigurationError

_SIGNATURE_ALGORITHMS: dict[str, type[hashes.HashAlgorithm]] = {
    "SHA1WITHRSA": hashes.SHA1,
    "SHA224WITHRSA": hashes.SHA224,
    "SHA256WITHRSA": hashes.SHA256,
    "SHA384WITHRSA": hashes.SHA384,
    "SHA512WITHRSA": hashes.SHA512,
}


def hash_algorithm_for(signature_algorithm: str) -> hashes.HashAlgorithm:
    """Resolve a JCA-style signature algorithm name ("SHA256withRSA") to a hash."""
    try:
        return _SIGNATURE_ALGORITHMS[signature_algorithm.upper()]()
    except KeyError:
        raise ConfigurationError(
            f"unsupported signature algorithm '{signature_algorithm}'"
        ) from None


def _serial_source(first_serial: int | None) -> Iterator[int]:
    # Millisecond clock seed keeps serials of consecutive runs apart
    return itertools.count(first_serial if first_serial is not None else int(time.time() * 1000))


@dataclass
class SigningContext:
    """State shared by every certificate issued in one run.

    Immutable after construction apart from the serial counter and
    release() dropping the signing key.
    """

    target_directory: Path
    defaults: Defaults = field(default_factory=Defaults)
    signing_certificate: x509.Certificate | None = None
    signing_private_key: RSAPrivateKey | None = field(default=None, repr=False)
    root_ca_file: Path | None = None
    first_serial: int | None = None
    _serials: Iterator[int] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._serials = _serial_source(self.first_serial)
        self.hash_algorithm = hash_algorithm_for(self.defaults.signature_algorithm)

    def next_serial(self) -> int:
        """Allocate the next serial; strictly increasing within the run."""
        return next(self._serials)

    @property
    def can_sign(self) -> bool:
        return self.signing_certificate is not None and self.signing_private_key is not None

    def signer(self) -> tuple[x509.Certificate, RSAPrivateKey]:
        """Return the signing certificate and key.

        Raises:
            ConfigurationError: In CSR-only contexts or after release()
        """
        if self.signing_certificate is None or self.signing_private_key is None:
            raise ConfigurationError("no signing CA available; load or create a CA first")
        return self.signing_certificate, self.signing_private_key

    def release(self) -> None:
        """Drop the signing key once the last certificate has been signed."""
        self.signing_private_key = None

    def with_signer(
        self, certificate: x509.Certificate, private_key: RSAPrivateKey
    ) -> "SigningContext":
        """Copy of this context signing with another CA, sharing the serial counter."""
        context = replace(self, signing_certificate=certificate, signing_private_key=private_key)
        context._serials = self._serials
        return context
