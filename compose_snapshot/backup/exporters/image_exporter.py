"""Container image backup/restore exporter."""

from typing import List, Tuple

from ..._utils import logger
from ...errors import ArtifactExportFailed, RuntimeCommandError
from ...runtime import ImageStore
from ..models import ArtifactKind, ArtifactResult, SnapshotContext
from ..utils import sanitize_image_ref


class ImageExporter:
    """Export and restore the images listed in a snapshot inventory."""

    def __init__(self, store: ImageStore):
        """Initialize exporter with an image store.

        Args:
            store: ImageStore adapter (docker CLI or in-memory)
        """
        self.store = store

    async def export(self, context: SnapshotContext) -> List[ArtifactResult]:
        """Pull and save every inventory image into ``images/``.

        A failed image is recorded and warned about; the loop continues.

        Args:
            context: Backup run context

        Returns:
            One ArtifactResult per image
        """
        logger.info("Saving images...")
        context.images_dir.mkdir(parents=True, exist_ok=True)

        results = []
        for ref in context.inventory.images:
            logger.info(f"  Saving {ref}...")
            try:
                blob = await self._export_image(ref, context)
            except ArtifactExportFailed as e:
                context.warn(f"    Failed to save image {ref}: {e.reason}")
                results.append(context.record(ArtifactResult.failure(ArtifactKind.IMAGE, ref, e.reason)))
                continue

            logger.info(f"    Saved to {blob.name}")
            results.append(context.record(ArtifactResult.success(ArtifactKind.IMAGE, ref, blob)))

        return results

    async def _export_image(self, ref: str, context: SnapshotContext):
        try:
            await self.store.pull_image(ref)
        except RuntimeCommandError as e:
            if not await self.store.image_exists(ref):
                raise ArtifactExportFailed("image", ref, f"pull failed and no local copy exists ({e})") from e
            logger.info(f"    Pull failed, using local copy of {ref}")

        blob = context.images_dir / sanitize_image_ref(ref)
        try:
            await self.store.save_image(ref, blob)
        except RuntimeCommandError as e:
            # Never leave a truncated blob that restore would try to load
            blob.unlink(missing_ok=True)
            raise ArtifactExportFailed("image", ref, str(e)) from e
        return blob

    async def restore(self, context: SnapshotContext, refs: List[str]) -> Tuple[List[str], List[str]]:
        """Load image blobs, falling back to a registry pull.

        Args:
            context: Restore run context
            refs: Image references from image_list.txt

        Returns:
            Tuple of (loaded from blob, pulled from registry)
        """
        logger.info("Loading images...")
        loaded, pulled = [], []

        for ref in refs:
            blob = context.images_dir / sanitize_image_ref(ref)
            if blob.is_file():
                logger.info(f"  Loading {ref}...")
                try:
                    await self.store.load_image(blob)
                    logger.info(f"    Loaded {ref}")
                    loaded.append(ref)
                    context.record(ArtifactResult.success(ArtifactKind.IMAGE, ref, blob))
                    continue
                except RuntimeCommandError as e:
                    context.warn(f"    Failed to load {ref} ({e}), attempting to pull...")
            else:
                context.warn(f"  Image file {blob.name} not found, attempting to pull...")

            try:
                await self.store.pull_image(ref)
            except RuntimeCommandError as e:
                context.warn(f"    Failed to pull {ref}")
                context.record(ArtifactResult.failure(ArtifactKind.IMAGE, ref, str(e)))
                continue

            logger.info(f"    Pulled {ref}")
            pulled.append(ref)
            context.record(ArtifactResult.success(ArtifactKind.IMAGE, ref))

        return loaded, pulled
