"""Configuration tree backup/restore exporter."""

import re
import shutil
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..._utils import logger
from ...errors import ArchiveCorrupt, DescriptorNotFound, PackagingError, RestoreFailed
from ..models import ArtifactKind, ArtifactResult, SnapshotContext


def update_env_value(env_file: Path, key: str, value: str) -> bool:
    """Rewrite ``KEY=...`` lines in an env file, leaving every other byte intact.

    Args:
        env_file: Path to the env file
        key: Variable name to rewrite
        value: New value

    Returns:
        True if at least one line was rewritten
    """
    # Undecodable bytes round-trip unchanged
    with open(env_file, "r", encoding="utf-8", errors="surrogateescape", newline="") as f:
        content = f.read()

    pattern = re.compile(rf"^{re.escape(key)}=[^\r\n]*", re.MULTILINE)
    updated, count = pattern.subn(lambda _: f"{key}={value}", content)
    if count == 0:
        return False

    with open(env_file, "w", encoding="utf-8", errors="surrogateescape", newline="") as f:
        f.write(updated)
    return True


class ConfigExporter:
    """Copy the deployment's configuration tree in and out of a snapshot."""

    def __init__(
        self,
        project_dir: Path,
        descriptor: str = "docker-compose.yml",
        env_file: str = ".env",
        config_dirs: Sequence[str] = (),
    ):
        """Initialize exporter.

        Args:
            project_dir: Deployment project directory
            descriptor: Compose file path relative to project_dir
            env_file: Env file path relative to project_dir
            config_dirs: Nested configuration directories relative to project_dir
        """
        self.project_dir = project_dir
        self.descriptor = descriptor
        self.env_file = env_file
        self.config_dirs = list(config_dirs)

    def _copy_file(self, relative: str, config_dir: Path) -> None:
        destination = config_dir / relative
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(self.project_dir / relative, destination)
        except OSError as e:
            raise PackagingError(f"Failed to copy {relative}: {e}") from e

    async def export(self, context: SnapshotContext) -> List[str]:
        """Copy descriptor, env file and config directories into ``config/``.

        Args:
            context: Backup run context

        Returns:
            Copied paths relative to ``config/`` (directories end with ``/``)

        Raises:
            DescriptorNotFound: The descriptor is missing
            PackagingError: A file or directory could not be copied
        """
        logger.info("Copying configuration files...")
        config_dir = context.config_dir
        try:
            config_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PackagingError(f"Failed to create {config_dir}: {e}") from e
        files = []

        if not (self.project_dir / self.descriptor).is_file():
            raise DescriptorNotFound(f"{self.descriptor} not found in {self.project_dir}")
        self._copy_file(self.descriptor, config_dir)
        files.append(self.descriptor)
        logger.info(f"  Copied {self.descriptor}")

        if (self.project_dir / self.env_file).is_file():
            self._copy_file(self.env_file, config_dir)
            files.append(self.env_file)
            logger.info(f"  Copied {self.env_file}")
        else:
            context.warn(f"  {self.env_file} not found - deployment may not work properly without it")

        for relative in self.config_dirs:
            source = self.project_dir / relative
            if not source.is_dir():
                context.warn(f"  Configuration directory {relative} not found, skipping")
                context.record(ArtifactResult.failure(ArtifactKind.CONFIG, relative, "directory not found"))
                continue
            try:
                shutil.copytree(source, config_dir / relative, symlinks=True, dirs_exist_ok=True)
            except OSError as e:
                # shutil.Error is an OSError too
                raise PackagingError(f"Failed to copy {relative}: {e}") from e
            files.append(f"{relative.rstrip('/')}/")
            logger.info(f"  Copied {relative} directory")

        context.config_files = files
        return files

    async def restore(
        self,
        context: SnapshotContext,
        target_dir: Path,
        host_address_key: str = "HOST_IP",
        resolve_address: Optional[Callable[[], Optional[str]]] = None,
    ) -> Optional[str]:
        """Copy ``config/`` into the target and point the env file at this host.

        Only the ``host_address_key`` line is rewritten. Any problem with the
        rewrite is a warning, never a failure.

        Args:
            context: Restore run context
            target_dir: Directory to restore configuration into
            host_address_key: Env variable holding the host address
            resolve_address: Returns this machine's address, or None

        Returns:
            The address written, or None if the env file was left untouched

        Raises:
            ArchiveCorrupt: Snapshot has no config/ directory
            RestoreFailed: Configuration could not be written to the target
        """
        logger.info("Restoring configuration files...")
        if not context.config_dir.is_dir():
            raise ArchiveCorrupt("Configuration files not found in backup")

        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            shutil.copytree(context.config_dir, target_dir, symlinks=True, dirs_exist_ok=True)
        except OSError as e:
            raise RestoreFailed(f"Failed to restore configuration into {target_dir}: {e}") from e
        logger.info(f"Configuration files restored to: {target_dir}")

        env_path = target_dir / self.env_file
        if not env_path.is_file():
            context.warn(f"  {self.env_file} not found, skipping {host_address_key} update")
            return None

        address = resolve_address() if resolve_address else None
        if not address:
            context.warn(f"  Could not determine system IP address, {host_address_key} not updated")
            return None

        logger.info(f"Updating {host_address_key} in {self.env_file} to: {address}")
        try:
            updated = update_env_value(env_path, host_address_key, address)
        except (OSError, ValueError) as e:
            context.warn(f"  Failed to update {host_address_key} in {self.env_file}: {e}")
            return None

        if not updated:
            context.warn(f"  {host_address_key} not present in {self.env_file}, left unchanged")
            return None

        logger.info(f"  Updated {host_address_key} to {address}")
        return address
