"""Error taxonomy for certificate generation."""


class TlsToolError(Exception):
    """Base class for all tool errors."""


class ConfigurationError(TlsToolError):
    """Missing or contradictory configuration, unreadable CA material, bad patterns."""

    def __init__(self, message: str, entity: str | None = None) -> None:
        if entity is not None:
            message = f"{entity}: {message}"
        super().__init__(message)
        self.entity = entity


class CertificateBuildError(TlsToolError):
    """Key generation, extension assembly, signing or encoding failed for one entity.

    The underlying exception is chained as __cause__.
    """

    def __init__(self, entity: str, role: str, cause: BaseException) -> None:
        super().__init__(f"{role} for {entity}: {cause}")
        self.entity = entity
        self.role = role


class ArtifactWriteError(TlsToolError):
    """An output group could not be written; partially written files were removed."""
