"""Snapshot packaging: metadata, restore launcher and the final archive."""

import os
import stat
from datetime import datetime
from pathlib import Path

from .._utils import created_by, format_size, logger
from ..errors import PackagingError
from .models import DEFAULT_ENV_FILE, DEFAULT_HOST_ADDRESS_KEY, FORMAT_VERSION, BackupInfo, SnapshotContext
from .utils import (
    BACKUP_INFO_FILE,
    IMAGE_LIST_FILE,
    RESTORE_LAUNCHER_FILE,
    VOLUME_LIST_FILE,
    compute_directory_checksum,
    create_archive,
    save_backup_info,
    write_list,
)

# The archive carries data only; restore logic lives in the installed tool.
RESTORE_LAUNCHER = """#!/bin/sh
# Restores the snapshot in this directory with compose-snapshot.
# Usage: ./restore [target_dir]
set -e
SNAPSHOT_DIR="$(cd "$(dirname "$0")" && pwd)"
TARGET_DIR="${1:-$(pwd)}"
if command -v compose-snapshot >/dev/null 2>&1; then
    exec compose-snapshot restore "$SNAPSHOT_DIR" "$TARGET_DIR"
fi
exec python3 -m compose_snapshot restore "$SNAPSHOT_DIR" "$TARGET_DIR"
"""


class SnapshotPackager:
    """Write snapshot metadata and bundle the staging tree into one archive."""

    def __init__(
        self,
        deployment: str,
        source_directory: Path,
        env_file: str = DEFAULT_ENV_FILE,
        host_address_key: str = DEFAULT_HOST_ADDRESS_KEY,
    ):
        self.deployment = deployment
        self.source_directory = source_directory
        self.env_file = env_file
        self.host_address_key = host_address_key

    def _tool_version(self) -> str:
        try:
            from .. import __version__
            return __version__
        except ImportError:
            return "unknown"

    async def write_metadata(self, context: SnapshotContext) -> BackupInfo:
        """Write list files, restore launcher and backup_info.json into the root."""
        root = context.root_dir
        write_list(context.inventory.images, root / IMAGE_LIST_FILE)
        write_list(context.inventory.volumes, root / VOLUME_LIST_FILE)

        launcher = root / RESTORE_LAUNCHER_FILE
        launcher.write_text(RESTORE_LAUNCHER)
        launcher.chmod(launcher.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

        info = BackupInfo(
            backup_date=datetime.now().astimezone(),
            backup_version=FORMAT_VERSION,
            deployment=self.deployment,
            created_by=created_by(),
            source_directory=str(self.source_directory),
            files=context.config_files,
            env_file=self.env_file,
            host_address_key=self.host_address_key,
            tool_version=self._tool_version(),
            failures=context.failures(),
        )
        # Checksum covers everything except backup_info.json itself
        info.checksum = compute_directory_checksum(root)
        await save_backup_info(info.model_dump(mode="json"), root / BACKUP_INFO_FILE)

        context.info = info
        logger.info(f"  Created {BACKUP_INFO_FILE}")
        return info

    async def package(self, context: SnapshotContext, output_path: Path) -> Path:
        """Write metadata and archive the snapshot root to ``output_path``.

        The archive is written to ``<output_path>.partial`` and renamed into
        place, so a failed or interrupted run never leaves a corrupt archive
        at the target path.

        Args:
            context: Backup run context; ``root_dir`` holds the staged artifacts
            output_path: Final archive path

        Returns:
            Path to the created archive

        Raises:
            PackagingError: Output is not writable or writing failed
        """
        logger.info("Creating final backup archive...")
        output_path = Path(output_path)
        parent = output_path.parent

        if not parent.is_dir():
            raise PackagingError(f"Output directory does not exist: {parent}")
        if not os.access(parent, os.W_OK):
            raise PackagingError(f"Output directory is not writable: {parent}")

        partial_path = output_path.with_name(output_path.name + ".partial")
        try:
            await self.write_metadata(context)
            size = await create_archive(context.root_dir, partial_path)
            os.replace(partial_path, output_path)
        except OSError as e:
            raise PackagingError(f"Failed to write archive {output_path}: {e}") from e
        finally:
            # Gone already after a successful rename
            partial_path.unlink(missing_ok=True)

        logger.info(f"Backup created: {output_path} ({format_size(size)})")
        return output_path
