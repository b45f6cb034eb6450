# ABOUTME: Crash-safe rewrite of an EPUB: unpack, patch, repack, verify, then swap into place.
# ABOUTME: The destination is backed up before the swap and restored if the swap fails.

import logging
import shutil
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from epubedit.core.workspace import (
    DEFAULT_CLEANUP_POLICY,
    CleanupPolicy,
    scratch_directory,
    staging_file,
)
from epubedit.errors import (
    BackupError,
    ConflictError,
    EpubEditError,
    NotFoundError,
    RestoreError,
    SwapError,
    VerificationError,
)
from epubedit.formats.epub import read_epub_metadata
from epubedit.formats.ocf import find_package_document, pack, unpack
from epubedit.formats.opf import OpfPatcher, PatchResult
from epubedit.metadata.types import EditRequest

logger = logging.getLogger(__name__)


class Stage(Enum):
    """Steps of a rewrite, reported in order through ``on_stage``."""

    UNPACKING = "unpacking"
    LOCATING = "locating"
    PATCHING = "patching"
    REPACKING = "repacking"
    VERIFYING = "verifying"
    BACKING_UP = "backing_up"
    SWAPPING = "swapping"
    CLEANING_UP = "cleaning_up"
    DONE = "done"
    FAILED = "failed"


@dataclass
class FieldVerification:
    """Result of verifying a single field in the rewritten archive."""

    field: str
    expected: str | None
    actual: str | None
    passed: bool


@dataclass
class ReplaceResult:
    """Outcome of a successful rewrite."""

    source: Path
    destination: Path
    patch: PatchResult
    verified_fields: list[FieldVerification] = field(default_factory=list)
    stages: list[Stage] = field(default_factory=list)


def _verify_write(
    archive: Path, edits: EditRequest, patch: PatchResult, work_dir: Path | None = None
) -> list[FieldVerification]:
    """Read back the archive and compare it against the edit request.

    Only fields the request sets are checked. Values are compared after
    stripping surrounding whitespace, since extraction trims text. When a
    cover was substituted, the extracted cover bytes must equal the
    replacement file.
    """
    read_back = read_epub_metadata(archive, work_dir=work_dir)
    verifications: list[FieldVerification] = []

    for name, value in edits.field_values().items():
        expected = value.strip()
        actual = read_back.get(name)
        verifications.append(FieldVerification(
            field=name,
            expected=expected,
            actual=actual,
            passed=expected == actual,
        ))

    if patch.cover is not None and edits.cover_path is not None:
        expected_size = edits.cover_path.stat().st_size
        actual_cover = read_back.cover
        verifications.append(FieldVerification(
            field="cover",
            expected=f"{expected_size} bytes",
            actual=f"{len(actual_cover.data)} bytes" if actual_cover is not None else None,
            passed=(
                actual_cover is not None
                and actual_cover.data == edits.cover_path.read_bytes()
            ),
        ))

    return verifications


def _swap(staged: Path, destination: Path) -> None:
    """Replace destination with the staged archive."""
    if destination.exists():
        destination.unlink()
    shutil.move(str(staged), str(destination))


class ReplaceCoordinator:
    """Runs the rewrite state machine for one EPUB at a time.

    Args:
        overwrite: Allow replacing an existing destination (including the
            source itself for in-place edits).
        tmp_dir: Where scratch directories and staging archives are created.
            None uses the system temporary directory.
        backup_dir: Where the pre-swap backup is written. None places it next
            to the destination.
        cleanup_policy: Retry policy for removing the scratch directory.
        verify: Read the staged archive back before it replaces anything.
        on_stage: Called with every Stage as the rewrite enters it.
    """

    def __init__(
        self,
        *,
        overwrite: bool = False,
        tmp_dir: Path | None = None,
        backup_dir: Path | None = None,
        cleanup_policy: CleanupPolicy = DEFAULT_CLEANUP_POLICY,
        verify: bool = True,
        on_stage: Callable[[Stage], None] | None = None,
    ) -> None:
        self.overwrite = overwrite
        self.tmp_dir = tmp_dir
        self.backup_dir = backup_dir
        self.cleanup_policy = cleanup_policy
        self.verify = verify
        self.on_stage = on_stage

    def run(
        self, source: Path, edits: EditRequest, *, output: Path | None = None
    ) -> ReplaceResult:
        """Apply edits to source and write the result to output (or source).

        The destination either keeps its original bytes or holds a complete,
        verified rewrite; never anything in between.

        Args:
            source: EPUB to read.
            edits: Fields and cover to apply.
            output: Where to write the result. Defaults to source, which
                requires ``overwrite=True``.

        Returns:
            ReplaceResult describing what was written.

        Raises:
            NoChangesError: If edits is empty (checked before any I/O).
            InvalidValueError: If a field value cannot be stored in XML (also before I/O).
            NotFoundError: If source or the replacement cover is missing.
            ConflictError: If the destination exists and overwrite is off.
            CorruptError: If source cannot be unpacked or parsed.
            PackagingError: If the rewritten archive cannot be built.
            CoverError: If the replacement cover cannot be copied.
            VerificationError: If the rewritten archive reads back wrong.
            SwapError: If the swap failed and the original was restored.
            BackupError: If the destination could not be backed up.
            RestoreError: If the swap failed and the backup could not be restored.
        """
        stages: list[Stage] = []

        def enter(stage: Stage) -> None:
            stages.append(stage)
            logger.debug("%s: %s", source, stage.value)
            if self.on_stage is not None:
                self.on_stage(stage)

        try:
            result = self._run(Path(source), edits, output, enter)
        except Exception:
            enter(Stage.FAILED)
            raise
        enter(Stage.DONE)
        result.stages = stages
        logger.info("Rewrote %s -> %s", result.source, result.destination)
        return result

    def _run(
        self,
        source: Path,
        edits: EditRequest,
        output: Path | None,
        enter: Callable[[Stage], None],
    ) -> ReplaceResult:
        edits.validate()
        if not source.is_file():
            raise NotFoundError(f"File not found, it may have been moved or deleted: {source}")
        if edits.cover_path is not None and not edits.cover_path.is_file():
            raise NotFoundError(f"Cover image not found: {edits.cover_path}")

        destination = Path(output) if output is not None else source
        if destination.exists() and not self.overwrite:
            raise ConflictError(destination)

        try:
            with scratch_directory(
                prefix="epubedit-", parent=self.tmp_dir, policy=self.cleanup_policy
            ) as tree, staging_file(parent=self.tmp_dir) as staged:
                enter(Stage.UNPACKING)
                unpack(source, tree)

                enter(Stage.LOCATING)
                opf_path = find_package_document(tree)

                enter(Stage.PATCHING)
                patch = OpfPatcher(opf_path.parent).apply(opf_path.read_bytes(), edits)
                opf_path.write_bytes(patch.data)

                enter(Stage.REPACKING)
                pack(tree, staged)

                verified: list[FieldVerification] = []
                if self.verify:
                    enter(Stage.VERIFYING)
                    verified = _verify_write(staged, edits, patch, self.tmp_dir)
                    failed = [v.field for v in verified if not v.passed]
                    if failed:
                        raise VerificationError(failed)

                self._install(staged, destination, enter)
                enter(Stage.CLEANING_UP)
        except OSError as exc:
            raise EpubEditError(f"I/O error while rewriting {source}: {exc}") from exc

        return ReplaceResult(
            source=source,
            destination=destination,
            patch=patch,
            verified_fields=verified,
        )

    def _backup_path(self, destination: Path) -> Path:
        directory = self.backup_dir if self.backup_dir is not None else destination.parent
        return directory / f"{destination.stem}_backup_{uuid.uuid4().hex[:8]}{destination.suffix}"

    def _backup(self, destination: Path) -> Path:
        backup = self._backup_path(destination)
        try:
            shutil.copy2(destination, backup)
        except OSError as exc:
            try:
                backup.unlink(missing_ok=True)
            except OSError:
                logger.warning("Could not remove partial backup %s", backup)
            raise BackupError(
                f"Failed to back up {destination} to {backup}: {exc}; "
                f"{destination} was not modified",
                None,
            ) from exc
        logger.debug("Backed up %s to %s", destination, backup)
        return backup

    def _restore(self, backup: Path, destination: Path) -> None:
        try:
            if destination.exists():
                destination.unlink()
            shutil.move(str(backup), str(destination))
        except OSError as exc:
            raise RestoreError(
                f"Swap failed and {destination} could not be restored: {exc}", backup
            ) from exc
        logger.warning("Restored %s from backup after a failed swap", destination)

    def _install(
        self, staged: Path, destination: Path, enter: Callable[[Stage], None]
    ) -> None:
        """Back up an existing destination, move the staged archive in, drop the backup."""
        backup = None
        if destination.exists():
            if not self.overwrite:
                raise ConflictError(destination)
            enter(Stage.BACKING_UP)
            backup = self._backup(destination)

        enter(Stage.SWAPPING)
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            _swap(staged, destination)
        except OSError as exc:
            if backup is None:
                destination.unlink(missing_ok=True)
                raise SwapError(f"Failed to move rewritten EPUB to {destination}: {exc}") from exc
            self._restore(backup, destination)
            raise SwapError(
                f"Failed to replace {destination}: {exc}; original restored"
            ) from exc

        if backup is not None:
            try:
                backup.unlink()
            except OSError as exc:
                logger.warning("Could not remove backup %s: %s", backup, exc)
