"""Snapshot restore state machine."""

import shutil
import tempfile
from pathlib import Path
from typing import Callable, List, Optional, Union

from pydantic import ValidationError

from .._utils import detect_host_address, logger
from ..errors import (
    ArchiveCorrupt,
    ArchiveNotFound,
    RestoreFailed,
    RuntimeCommandError,
    SnapshotError,
    StartFailed,
)
from ..runtime import ContainerRuntime
from .exporters import ConfigExporter, ImageExporter, VolumeExporter
from .models import (
    DEFAULT_ENV_FILE,
    DEFAULT_HOST_ADDRESS_KEY,
    SUPPORTED_MAJOR_VERSION,
    BackupInfo,
    RestoreResult,
    RestoreStage,
    SnapshotContext,
)
from .utils import (
    BACKUP_INFO_FILE,
    IMAGE_LIST_FILE,
    VOLUME_LIST_FILE,
    compute_directory_checksum,
    extract_archive,
    load_backup_info,
    locate_root,
    read_list,
)


class SnapshotRestorer:
    """Rebuild a running deployment from a snapshot archive.

    Stages run strictly in order::

        VALIDATING -> EXTRACTING -> CONFIGURING -> LOADING_IMAGES
                   -> RESTORING_VOLUMES -> STARTING -> DONE

    Any fatal SnapshotError moves the run to FAILED, tags the error with the
    stage it happened in, and is re-raised. Per-artifact problems are only
    warnings. The same sequence runs whether the input is an archive file or
    an already-extracted snapshot directory.
    """

    def __init__(
        self,
        runtime: ContainerRuntime,
        env_file: Optional[str] = None,
        host_address_key: Optional[str] = None,
        resolve_address: Optional[Callable[[], Optional[str]]] = detect_host_address,
    ):
        """Initialize restorer.

        Args:
            runtime: Runtime adapter providing images, volumes and compose control
            env_file: Env file (relative to the config tree) holding the host address.
                If None, the path recorded in backup_info.json is used.
            host_address_key: Env variable rewritten to this host's address.
                If None, the key recorded in backup_info.json is used.
            resolve_address: Returns this machine's primary address, or None
        """
        self.runtime = runtime
        self.env_file = env_file
        self.host_address_key = host_address_key
        self.resolve_address = resolve_address
        self.result: Optional[RestoreResult] = None

    def _enter(self, stage: RestoreStage) -> None:
        self.result.state = stage
        self.result.stages.append(stage)
        if stage not in (RestoreStage.DONE, RestoreStage.FAILED):
            logger.info(f"[{stage.value}]")

    async def restore(
        self,
        archive_path: Union[str, Path],
        target_dir: Union[str, Path],
    ) -> RestoreResult:
        """Restore a snapshot into ``target_dir`` and start the deployment.

        Args:
            archive_path: Snapshot archive, or an extracted snapshot directory
            target_dir: Directory to restore configuration into and run from

        Returns:
            RestoreResult with state DONE

        Raises:
            ArchiveNotFound: Archive path does not exist
            EnvironmentUnavailable: Runtime or compose CLI unreachable
            ArchiveCorrupt: Archive is unreadable or incomplete
            StartFailed: Orchestrator could not start the deployment
        """
        source = Path(archive_path)
        target = Path(target_dir).resolve()
        self.result = RestoreResult(target_dir=str(target))
        context: Optional[SnapshotContext] = None
        scratch_dir: Optional[Path] = None

        try:
            self._enter(RestoreStage.VALIDATING)
            compose_command = await self._validate(source)

            self._enter(RestoreStage.EXTRACTING)
            if source.is_dir():
                extract_dir = source
            else:
                scratch_dir = Path(tempfile.mkdtemp(prefix="compose-snapshot-restore-"))
                await extract_archive(source, scratch_dir)
                extract_dir = scratch_dir
            context = SnapshotContext(
                root_dir=locate_root(extract_dir),
                target_dir=target,
                compose_command=compose_command,
            )
            await self._load_info(context)

            self._enter(RestoreStage.CONFIGURING)
            env_file = self.env_file or context.info.env_file or DEFAULT_ENV_FILE
            host_address_key = self.host_address_key or context.info.host_address_key or DEFAULT_HOST_ADDRESS_KEY
            config_exporter = ConfigExporter(project_dir=context.config_dir, env_file=env_file)
            self.result.host_address = await config_exporter.restore(
                context,
                target,
                host_address_key=host_address_key,
                resolve_address=self.resolve_address,
            )

            self._enter(RestoreStage.LOADING_IMAGES)
            refs = self._read_list(context, IMAGE_LIST_FILE, "Image list")
            loaded, pulled = await ImageExporter(self.runtime).restore(context, refs)
            self.result.images_loaded = loaded
            self.result.images_pulled = pulled

            self._enter(RestoreStage.RESTORING_VOLUMES)
            names = self._read_list(context, VOLUME_LIST_FILE, "Volume list")
            self.result.volumes_restored = await VolumeExporter(self.runtime).restore(context, names)

            self._enter(RestoreStage.STARTING)
            await self._start(target)

            self._enter(RestoreStage.DONE)

        except SnapshotError as e:
            self._fail(e)
            raise

        except OSError as e:
            error = RestoreFailed(f"Filesystem error: {e}")
            self._fail(error)
            raise error from e

        finally:
            if context is not None:
                self.result.warnings = list(context.warnings)
                self.result.artifacts = list(context.artifacts)
            if scratch_dir is not None:
                shutil.rmtree(scratch_dir, ignore_errors=True)

        return self.result

    def _fail(self, error: SnapshotError) -> None:
        failed_stage = self.result.state
        error.stage = error.stage or failed_stage.value
        self.result.failed_stage = failed_stage
        self.result.error = str(error)
        self._enter(RestoreStage.FAILED)

    async def _validate(self, source: Path) -> str:
        logger.info("Checking restore prerequisites...")
        if not source.exists():
            raise ArchiveNotFound(f"Backup archive not found: {source}")

        # Single hard precondition; not retried
        await self.runtime.check_available()
        compose_command = await self.runtime.detect_compose()

        logger.info("Restore prerequisites check passed")
        return compose_command

    async def _load_info(self, context: SnapshotContext) -> BackupInfo:
        root = context.root_dir
        data = await load_backup_info(root / BACKUP_INFO_FILE)
        try:
            info = BackupInfo(**data)
        except ValidationError as e:
            raise ArchiveCorrupt(f"Invalid {BACKUP_INFO_FILE}: {e}") from e

        if info.major_version != SUPPORTED_MAJOR_VERSION:
            raise ArchiveCorrupt(
                f"Unsupported backup_version {info.backup_version} "
                f"(this tool restores {SUPPORTED_MAJOR_VERSION}.x)"
            )
        if not context.config_dir.is_dir():
            raise ArchiveCorrupt("Configuration files not found in backup")

        if info.checksum:
            computed = compute_directory_checksum(root)
            if computed == info.checksum:
                logger.info(f"Payload checksum verified: {info.checksum}")
            else:
                context.warn(f"Checksum mismatch! Expected: {info.checksum}, Got: {computed}")

        logger.info(f"Backup extracted to: {root}")
        logger.info("Backup Information:")
        logger.info(f"  Backup Date: {info.backup_date.isoformat()}")
        logger.info(f"  Deployment: {info.deployment}")
        logger.info(f"  Created by: {info.created_by}")
        for failure in info.failures:
            logger.info(f"  Not captured at backup time: {failure.kind.value} {failure.name} ({failure.reason})")

        context.info = info
        self.result.deployment = info.deployment
        return info

    def _read_list(self, context: SnapshotContext, filename: str, label: str) -> List[str]:
        path = context.root_dir / filename
        if not path.is_file():
            context.warn(f"{label} not found in backup")
            return []
        return read_list(path)

    async def _start(self, target: Path) -> None:
        logger.info("Starting the deployment...")

        logger.info("Stopping any existing deployment...")
        try:
            await self.runtime.compose_down(target)
        except RuntimeCommandError as e:
            logger.debug(f"Nothing to stop: {e}")

        logger.info("Starting services...")
        try:
            await self.runtime.compose_up(target)
        except RuntimeCommandError as e:
            raise StartFailed(f"Failed to start the deployment: {e}") from e

        logger.info("Deployment started successfully!")
        try:
            status = await self.runtime.compose_status(target)
        except RuntimeCommandError as e:
            logger.warning(f"Could not read deployment status: {e}")
            return
        if status:
            logger.info(f"Deployment status:\n{status.rstrip()}")
