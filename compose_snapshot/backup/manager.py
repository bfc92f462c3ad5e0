"""Backup and restore orchestration for compose deployments."""

import shutil
import tempfile
from pathlib import Path
from typing import Callable, Optional, Union

from .._utils import detect_host_address, logger
from ..config import SnapshotConfig
from ..inventory import extract
from ..runtime import ContainerRuntime, create_runtime
from .exporters import ConfigExporter, ImageExporter, VolumeExporter
from .models import BackupResult, RestoreResult, SnapshotContext
from .packager import SnapshotPackager
from .restorer import SnapshotRestorer
from .utils import generate_archive_name, root_dir_name


class SnapshotManager:
    """Orchestrate snapshot backup and restore for one deployment."""

    def __init__(
        self,
        config: Optional[SnapshotConfig] = None,
        runtime: Optional[ContainerRuntime] = None,
        resolve_address: Optional[Callable[[], Optional[str]]] = detect_host_address,
    ):
        """Initialize snapshot manager.

        Args:
            config: Deployment configuration. If None, loaded from the environment.
            runtime: Runtime adapter. If None, created from ``config.runtime``.
            resolve_address: Host address lookup used during restore
        """
        self.config = config or SnapshotConfig.from_env()
        self.runtime = runtime or create_runtime(self.config)
        self.resolve_address = resolve_address

    def default_output_path(self) -> Path:
        return Path.cwd() / generate_archive_name(self.config.deployment_name)

    async def create_backup(self, output_path: Optional[Union[str, Path]] = None) -> BackupResult:
        """Capture images, volumes and configuration into one archive.

        Args:
            output_path: Archive path. If None, a timestamped name in the current directory.

        Returns:
            BackupResult with archive location, size and per-artifact results

        Raises:
            EnvironmentUnavailable: Container runtime unreachable
            DescriptorNotFound: Compose file missing
            DescriptorMalformed: Compose file unparseable
            PackagingError: Archive could not be written
        """
        config = self.config
        deployment = config.deployment_name
        output = Path(output_path).resolve() if output_path else self.default_output_path()

        logger.info(f"Starting backup: {deployment}")
        logger.info(f"Output file: {output}")
        logger.info(f"Project directory: {config.project_path}")

        # Unique staging directory per run
        staging_dir = Path(tempfile.mkdtemp(prefix="compose-snapshot-"))
        context = SnapshotContext(root_dir=staging_dir / root_dir_name(deployment))
        context.root_dir.mkdir(parents=True)

        try:
            logger.info("Checking backup prerequisites...")
            await self.runtime.check_available()
            context.inventory = extract(config.descriptor_path, warn=context.warn)
            logger.info("Backup prerequisites check passed")

            await ImageExporter(self.runtime).export(context)
            await VolumeExporter(self.runtime).export(context)
            await ConfigExporter(
                project_dir=config.project_path,
                descriptor=config.descriptor,
                env_file=config.env_file,
                config_dirs=config.config_dirs,
            ).export(context)

            packager = SnapshotPackager(
                deployment,
                config.project_path,
                env_file=config.env_file,
                host_address_key=config.host_address_key,
            )
            archive_path = await packager.package(context, output)

        finally:
            # Clean up staging directory
            shutil.rmtree(staging_dir, ignore_errors=True)

        result = BackupResult(
            archive_path=str(archive_path),
            size_bytes=archive_path.stat().st_size,
            deployment=deployment,
            inventory=context.inventory,
            artifacts=context.artifacts,
            warnings=context.warnings,
        )
        logger.info(f"Backup complete: {archive_path} ({len(result.warnings)} warnings)")
        return result

    async def restore_backup(
        self,
        archive_path: Union[str, Path],
        target_dir: Optional[Union[str, Path]] = None,
        env_file: Optional[str] = None,
        host_address_key: Optional[str] = None,
    ) -> RestoreResult:
        """Restore a snapshot archive and start the deployment.

        Args:
            archive_path: Snapshot archive or extracted snapshot directory
            target_dir: Restore destination. If None, the current directory.
            env_file: Env file to rewrite. If None, the one recorded in the snapshot.
            host_address_key: Env variable to rewrite. If None, the one recorded in the snapshot.

        Returns:
            RestoreResult describing the completed run
        """
        restorer = SnapshotRestorer(
            self.runtime,
            env_file=env_file,
            host_address_key=host_address_key,
            resolve_address=self.resolve_address,
        )
        result = await restorer.restore(archive_path, target_dir or Path.cwd())
        logger.info(f"Restore complete: {result.target_dir} ({len(result.warnings)} warnings)")
        return result
