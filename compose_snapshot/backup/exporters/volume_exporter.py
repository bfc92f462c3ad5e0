"""Named volume backup/restore exporter."""

from typing import List

from ..._utils import logger
from ...errors import ArtifactExportFailed, RuntimeCommandError
from ...runtime import VolumeStore
from ..models import ArtifactKind, ArtifactResult, SnapshotContext
from ..utils import volume_blob_name


class VolumeExporter:
    """Export and restore named volumes through throwaway helper processes."""

    def __init__(self, store: VolumeStore):
        """Initialize exporter with a volume store.

        Args:
            store: VolumeStore adapter (docker CLI or in-memory)
        """
        self.store = store

    async def export(self, context: SnapshotContext) -> List[ArtifactResult]:
        """Archive every inventory volume into ``volumes/<name>.tar.gz``.

        Args:
            context: Backup run context

        Returns:
            One ArtifactResult per volume
        """
        logger.info("Backing up volumes...")
        context.volumes_dir.mkdir(parents=True, exist_ok=True)

        results = []
        for name in context.inventory.volumes:
            logger.info(f"  Backing up volume {name}...")
            try:
                blob = await self._export_volume(name, context)
            except ArtifactExportFailed as e:
                context.warn(f"    Failed to back up volume {name}: {e.reason}")
                results.append(context.record(ArtifactResult.failure(ArtifactKind.VOLUME, name, e.reason)))
                continue

            logger.info(f"    Backed up to {blob.name}")
            results.append(context.record(ArtifactResult.success(ArtifactKind.VOLUME, name, blob)))

        return results

    async def _export_volume(self, name: str, context: SnapshotContext):
        if not await self.store.volume_exists(name):
            raise ArtifactExportFailed("volume", name, "volume does not exist")

        try:
            return await self.store.export_volume(name, context.volumes_dir)
        except RuntimeCommandError as e:
            (context.volumes_dir / volume_blob_name(name)).unlink(missing_ok=True)
            raise ArtifactExportFailed("volume", name, str(e)) from e

    async def restore(self, context: SnapshotContext, names: List[str]) -> List[str]:
        """Recreate volumes and repopulate them from their tarballs.

        Volumes without a tarball are skipped with a warning.

        Args:
            context: Restore run context
            names: Volume names from volume_list.txt

        Returns:
            Names of volumes that were restored
        """
        logger.info("Restoring volumes...")
        restored = []

        for name in names:
            blob = context.volumes_dir / volume_blob_name(name)
            if not blob.is_file():
                context.warn(f"  Volume archive {blob.name} not found, skipping volume {name}")
                context.record(ArtifactResult.failure(ArtifactKind.VOLUME, name, "archive missing"))
                continue

            logger.info(f"  Restoring volume {name}...")
            try:
                await self.store.create_volume(name)
                await self.store.import_volume(name, blob)
            except RuntimeCommandError as e:
                context.warn(f"    Failed to restore volume {name}: {e}")
                context.record(ArtifactResult.failure(ArtifactKind.VOLUME, name, str(e)))
                continue

            logger.info(f"    Restored volume {name}")
            restored.append(name)
            context.record(ArtifactResult.success(ArtifactKind.VOLUME, name, blob))

        return restored
