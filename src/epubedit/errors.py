# ABOUTME: Exception hierarchy for EPUB rewrite failures.
# ABOUTME: Each error carries a readable message and a short kind tag for batch reports.

from pathlib import Path


class EpubEditError(Exception):
    """Base class for failures raised while reading or rewriting an EPUB."""

    kind = "error"


class NotFoundError(EpubEditError):
    """Raised when a source file, cover image, or package document is missing."""

    kind = "not_found"


class CorruptError(EpubEditError):
    """Raised when a container cannot be unpacked or its XML cannot be parsed."""

    kind = "corrupt"


class ConflictError(EpubEditError):
    """Raised when the destination exists and overwriting is disabled."""

    kind = "conflict"

    def __init__(self, path: Path) -> None:
        super().__init__(f"Destination already exists: {path} (use overwrite to replace it)")
        self.path = path


class PackagingError(EpubEditError):
    """Raised when an entry cannot be written into the output archive."""

    kind = "packaging"

    def __init__(self, entry: str, reason: str) -> None:
        super().__init__(f"Failed to add {entry} to archive: {reason}")
        self.entry = entry


class CoverError(EpubEditError):
    """Raised when a replacement cover cannot be copied into the container."""

    kind = "cover"


class VerificationError(EpubEditError):
    """Raised when a rewritten archive does not read back with the requested values."""

    kind = "verification"

    def __init__(self, fields: list[str]) -> None:
        super().__init__(f"Verification failed for: {', '.join(fields)}")
        self.fields = fields


class SwapError(EpubEditError):
    """Raised when the rewritten archive could not be moved into place.

    The destination has been restored from its backup (or never existed).
    """

    kind = "swap"


class FatalError(EpubEditError):
    """An unrecoverable state; the original bytes survive only at backup_path."""

    kind = "fatal"

    def __init__(self, message: str, backup_path: Path | None) -> None:
        if backup_path is not None:
            message = f"{message} (backup kept at {backup_path})"
        super().__init__(message)
        self.backup_path = backup_path


class BackupError(FatalError):
    """Raised when the destination could not be backed up before swapping."""

    kind = "backup"


class RestoreError(FatalError):
    """Raised when a failed swap could not be rolled back from the backup."""

    kind = "restore"


class InvalidValueError(EpubEditError):
    """Raised when a field value cannot be stored in XML."""

    kind = "invalid_value"

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"Invalid value for {field}: {reason}")
        self.field = field


class NoChangesError(EpubEditError):
    """Raised when an edit request sets no field and no cover."""

    kind = "no_changes"

    def __init__(self) -> None:
        super().__init__("No changes requested: set at least one field or a cover")
