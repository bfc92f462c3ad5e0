from .manager import SnapshotManager
from .packager import SnapshotPackager
from .restorer import SnapshotRestorer

__all__ = ["SnapshotManager", "SnapshotPackager", "SnapshotRestorer"]
