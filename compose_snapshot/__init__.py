from .config import SnapshotConfig
from .backup import SnapshotManager

__version__ = "1.0.0"
__author__ = "compose-snapshot-maintainers"

__all__ = ["SnapshotConfig", "SnapshotManager", "__version__"]
