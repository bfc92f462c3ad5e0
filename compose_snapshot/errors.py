"""Error hierarchy for snapshot and restore operations."""

from typing import Optional, Sequence


class SnapshotError(Exception):
    """Base exception for snapshot operations.

    ``stage`` is filled in by the restorer when a fatal error aborts a
    particular stage, so callers can name it in diagnostics.
    """

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage


class EnvironmentUnavailable(SnapshotError):
    """Container runtime or compose orchestrator is not reachable."""
    pass


class DescriptorNotFound(SnapshotError):
    """Deployment descriptor does not exist."""
    pass


class DescriptorMalformed(SnapshotError):
    """Deployment descriptor could not be parsed."""
    pass


class ArtifactExportFailed(SnapshotError):
    """A single image or volume could not be exported or imported."""

    def __init__(self, kind: str, name: str, reason: str):
        super().__init__(f"{kind} {name}: {reason}")
        self.kind = kind
        self.name = name
        self.reason = reason


class ArchiveNotFound(SnapshotError):
    """Snapshot archive path does not exist."""
    pass


class ArchiveCorrupt(SnapshotError):
    """Snapshot archive is unreadable or is missing expected members."""
    pass


class PackagingError(SnapshotError):
    """Snapshot archive could not be written."""
    pass


class RestoreFailed(SnapshotError):
    """Restored files could not be written on the target host."""
    pass


class StartFailed(SnapshotError):
    """Orchestrator failed to start the restored deployment."""
    pass


class RuntimeCommandError(SnapshotError):
    """An external CLI invocation exited non-zero or timed out."""

    def __init__(self, argv: Sequence[str], returncode: Optional[int], stderr: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr.strip()
        if returncode is None:
            message = f"Command timed out: {' '.join(self.argv)}"
        else:
            message = f"Command failed ({returncode}): {' '.join(self.argv)}"
        if self.stderr:
            message = f"{message}: {self.stderr.splitlines()[-1]}"
        super().__init__(message)
