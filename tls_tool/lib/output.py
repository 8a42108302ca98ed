"""Output artifact emission: overwrite protection, key encryption and password notes."""

import secrets
import string
from pathlib import Path

from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from .cert_utils import serialize_private_key
from .config import AUTO_PASSWORD
from .exceptions import ArtifactWriteError, ConfigurationError
from .logging_config import LOGGER
from .models import OutputArtifact

MIN_GENERATED_PASSWORD_LENGTH = 12
_PASSWORD_ALPHABET = string.ascii_letters + string.digits

CLIENT_README_HEADER = """\
This directory contains client certificates and private keys.

Each <name>.pem file holds the client certificate followed by the signing CA
certificate. The matching private key is stored in <name>.key.

Private keys protected by an automatically generated password are listed
below together with their password. Keep this file in a safe place or
delete it after distributing the passwords.
"""

NODE_README_HEADER = """\
This directory contains node certificates and private keys.

Private keys protected by an automatically generated password are listed
below together with their password. The passwords are also part of the
node's configuration snippet.
"""

CA_README_HEADER = """\
This directory contains the certificate authority used to sign node and
client certificates. Protect the CA private keys: anyone holding them can
issue trusted certificates.

Private keys protected by an automatically generated password are listed
below together with their password.
"""


def generate_password(length: int = 20) -> str:
    """Generate a password of letters and digits with at least one of each class."""
    if length < MIN_GENERATED_PASSWORD_LENGTH:
        raise ConfigurationError(
            f"generated passwords must be at least {MIN_GENERATED_PASSWORD_LENGTH} characters"
        )
    while True:
        password = "".join(secrets.choice(_PASSWORD_ALPHABET) for _ in range(length))
        if (
            any(c.islower() for c in password)
            and any(c.isupper() for c in password)
            and any(c.isdigit() for c in password)
        ):
            return password


def resolve_password(spec: str | None, generated_length: int = 20) -> tuple[str | None, bool]:
    """Turn a password spec into (password, auto_generated).

    None, "" and "none" mean the key is written unencrypted.
    """
    if spec is None:
        return None, False
    spec = str(spec)
    if spec == "" or spec.lower() == "none":
        return None, False
    if spec.lower() == AUTO_PASSWORD:
        return generate_password(generated_length), True
    return spec, False


def key_artifact(path: Path, key: RSAPrivateKey, password: str | None) -> OutputArtifact:
    """Private key artifact, encrypted when a password is in effect."""
    content = serialize_private_key(key, password)
    return OutputArtifact(path=path, content=content, password=password)


def password_note(key_path: Path, password: str) -> str:
    return f"\nPassword for private key {key_path}: {password}\n"


class OutputArtifactWriter:
    """Writes groups of artifacts all-or-nothing into the target directory."""

    def __init__(self, target_directory: Path) -> None:
        self.target_directory = target_directory

    def conflicts(self, paths: list[Path]) -> list[Path]:
        return [path for path in paths if path.exists()]

    def check_group(self, entity: str, paths: list[Path]) -> bool:
        """Return False and log a skip if any path of the group already exists."""
        existing = self.conflicts(paths)
        if existing:
            LOGGER.warning(
                "Skipping %s: files already exist: %s",
                entity,
                ", ".join(str(path) for path in existing),
            )
            return False
        return True

    def try_write_group(self, entity: str, artifacts: list[OutputArtifact]) -> bool:
        """Write every artifact of the group, or none of them.

        Returns:
            False if any target already exists (nothing written), True otherwise

        Raises:
            ArtifactWriteError: If writing fails; files written by this call are removed
        """
        if not self.check_group(entity, [artifact.path for artifact in artifacts]):
            return False

        written: list[Path] = []
        try:
            for artifact in artifacts:
                artifact.path.parent.mkdir(parents=True, exist_ok=True)
                # "x" mode refuses to replace a file created since the check
                with artifact.path.open("xb") as f:
                    written.append(artifact.path)
                    f.write(artifact.content)
                if artifact.path.suffix == ".key":
                    artifact.path.chmod(0o600)
                LOGGER.info("Wrote %s", artifact.path)
        except OSError as e:
            for path in written:
                path.unlink(missing_ok=True)
            raise ArtifactWriteError(f"could not write files for {entity}: {e}") from e

        return True

    def remove_group(self, artifacts: list[OutputArtifact]) -> None:
        """Delete the files of a group written earlier in this run."""
        for artifact in artifacts:
            artifact.path.unlink(missing_ok=True)
            LOGGER.warning("Removed %s", artifact.path)

    def append_note(self, path: Path, header: str, text: str) -> None:
        """Append text to a notes file, starting it with header when new.

        Raises:
            ArtifactWriteError: If the notes file cannot be written
        """
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            is_new = not path.exists()
            with path.open("a", encoding="utf-8") as f:
                if is_new:
                    f.write(header)
                f.write(text)
        except OSError as e:
            raise ArtifactWriteError(f"could not write {path}: {e}") from e
        LOGGER.info("Updated %s", path)

    def write_if_absent(self, path: Path, content: str) -> bool:
        """Write a standalone text file unless it exists already.

        Raises:
            ArtifactWriteError: If the file cannot be written
        """
        if path.exists():
            LOGGER.warning("Not overwriting existing file %s", path)
            return False
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise ArtifactWriteError(f"could not write {path}: {e}") from e
        LOGGER.info("Wrote %s", path)
        return True
