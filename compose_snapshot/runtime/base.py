"""Capability interfaces for the container runtime and compose orchestrator."""

from abc import ABC, abstractmethod
from pathlib import Path


class ImageStore(ABC):
    """Distributable container images."""

    @abstractmethod
    async def pull_image(self, ref: str) -> None:
        """Pull an image from its registry. Safe to call when already present.

        Raises:
            RuntimeCommandError: Pull failed
        """
        pass

    @abstractmethod
    async def image_exists(self, ref: str) -> bool:
        """Check whether an image is present locally."""
        pass

    @abstractmethod
    async def save_image(self, ref: str, output_file: Path) -> None:
        """Export a local image to a blob file.

        Raises:
            RuntimeCommandError: Export failed
        """
        pass

    @abstractmethod
    async def load_image(self, input_file: Path) -> None:
        """Import an image blob previously written by save_image.

        Raises:
            RuntimeCommandError: Import failed
        """
        pass


class VolumeStore(ABC):
    """Persistent named volumes."""

    @abstractmethod
    async def volume_exists(self, name: str) -> bool:
        pass

    @abstractmethod
    async def create_volume(self, name: str) -> None:
        """Create a named volume. No error if it already exists."""
        pass

    @abstractmethod
    async def export_volume(self, name: str, output_dir: Path) -> Path:
        """Stream a volume's file tree into ``output_dir/<name>.tar.gz``.

        The volume is mounted read-only by a throwaway helper.

        Returns:
            Path to the written tarball

        Raises:
            RuntimeCommandError: Helper process failed
        """
        pass

    @abstractmethod
    async def import_volume(self, name: str, archive_file: Path) -> None:
        """Extract a tarball written by export_volume into an existing volume.

        Raises:
            RuntimeCommandError: Helper process failed
        """
        pass


class DeploymentController(ABC):
    """Compose-style orchestrator for a multi-service deployment."""

    @abstractmethod
    async def detect_compose(self) -> str:
        """Locate a usable compose command.

        Returns:
            Human-readable command, e.g. ``docker compose``

        Raises:
            EnvironmentUnavailable: No compose command is usable
        """
        pass

    @abstractmethod
    async def compose_down(self, project_dir: Path) -> None:
        """Stop the deployment in ``project_dir`` and remove orphans.

        Raises:
            RuntimeCommandError: Orchestrator reported failure
        """
        pass

    @abstractmethod
    async def compose_up(self, project_dir: Path) -> None:
        """Start the deployment in ``project_dir`` detached.

        Raises:
            RuntimeCommandError: Orchestrator reported failure
        """
        pass

    @abstractmethod
    async def compose_status(self, project_dir: Path) -> str:
        """Return the orchestrator's service listing for ``project_dir``."""
        pass


class ContainerRuntime(ImageStore, VolumeStore, DeploymentController):
    """Everything the snapshot tool needs from the container platform."""

    name: str = ""  # Override in subclasses

    @classmethod
    def from_config(cls, config) -> "ContainerRuntime":
        return cls()

    @abstractmethod
    async def check_available(self) -> None:
        """Confirm the runtime daemon is reachable.

        Raises:
            EnvironmentUnavailable: Runtime is not reachable
        """
        pass
