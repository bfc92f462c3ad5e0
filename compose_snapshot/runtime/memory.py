"""In-memory runtime adapter.

Keeps images, volumes and deployment state in dictionaries while still
writing real blob and tarball files, so backup and restore can be exercised
end to end without a container daemon.
"""

import io
import json
import tarfile
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

from ..errors import EnvironmentUnavailable, RuntimeCommandError
from .base import ContainerRuntime


class InMemoryRuntime(ContainerRuntime):
    """Dictionary-backed ImageStore, VolumeStore and DeploymentController."""

    name = "memory"

    def __init__(
        self,
        registry: Optional[Dict[str, str]] = None,
        images: Optional[Dict[str, str]] = None,
        volumes: Optional[Dict[str, Dict[str, bytes]]] = None,
        available: bool = True,
        compose_available: bool = True,
    ):
        """Initialize the runtime.

        Args:
            registry: Image references pullable from the "network", mapped to content
            images: Images already present locally
            volumes: Existing volumes, mapped to {relative path: file bytes}
            available: Whether check_available succeeds
            compose_available: Whether detect_compose succeeds
        """
        self.registry: Dict[str, str] = dict(registry or {})
        self.images: Dict[str, str] = dict(images or {})
        self.volumes: Dict[str, Dict[str, bytes]] = {k: dict(v) for k, v in (volumes or {}).items()}
        self.available = available
        self.compose_available = compose_available

        # Failure injection
        self.fail_pull: Set[str] = set()
        self.fail_save: Set[str] = set()
        self.fail_load: Set[str] = set()
        self.fail_export: Set[str] = set()
        self.fail_import: Set[str] = set()
        self.fail_up = False
        self.fail_down = False

        self.deployments: Dict[str, bool] = {}
        self.calls: List[Tuple[str, ...]] = []

    def _fail(self, *argv: str) -> RuntimeCommandError:
        return RuntimeCommandError(["memory", *argv], 1, "injected failure")

    def calls_of(self, operation: str) -> List[Tuple[str, ...]]:
        return [call for call in self.calls if call[0] == operation]

    async def check_available(self) -> None:
        self.calls.append(("info",))
        if not self.available:
            raise EnvironmentUnavailable("Container runtime is not running or not accessible")

    # ImageStore

    async def pull_image(self, ref: str) -> None:
        self.calls.append(("pull", ref))
        if ref in self.fail_pull or ref not in self.registry:
            raise self._fail("pull", ref)
        self.images[ref] = self.registry[ref]

    async def image_exists(self, ref: str) -> bool:
        return ref in self.images

    async def save_image(self, ref: str, output_file: Path) -> None:
        self.calls.append(("save", ref))
        if ref in self.fail_save or ref not in self.images:
            raise self._fail("save", ref)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        with open(output_file, "w") as f:
            json.dump({"ref": ref, "content": self.images[ref]}, f)

    async def load_image(self, input_file: Path) -> None:
        self.calls.append(("load", input_file.name))
        try:
            with open(input_file, "r") as f:
                blob = json.load(f)
        except (OSError, ValueError) as e:
            raise RuntimeCommandError(["memory", "load", str(input_file)], 1, str(e)) from e
        if blob["ref"] in self.fail_load:
            raise self._fail("load", blob["ref"])
        self.images[blob["ref"]] = blob["content"]

    # VolumeStore

    async def volume_exists(self, name: str) -> bool:
        return name in self.volumes

    async def create_volume(self, name: str) -> None:
        self.calls.append(("volume_create", name))
        self.volumes.setdefault(name, {})

    async def export_volume(self, name: str, output_dir: Path) -> Path:
        self.calls.append(("volume_export", name))
        if name in self.fail_export or name not in self.volumes:
            raise self._fail("volume_export", name)

        output_dir.mkdir(parents=True, exist_ok=True)
        archive_file = output_dir / f"{name}.tar.gz"
        with tarfile.open(archive_file, "w:gz") as tar:
            for rel_path in sorted(self.volumes[name]):
                data = self.volumes[name][rel_path]
                info = tarfile.TarInfo(name=f"./{rel_path}")
                info.size = len(data)
                tar.addfile(info, io.BytesIO(data))
        return archive_file

    async def import_volume(self, name: str, archive_file: Path) -> None:
        self.calls.append(("volume_import", name))
        if name in self.fail_import:
            raise self._fail("volume_import", name)
        if name not in self.volumes:
            raise RuntimeCommandError(["memory", "volume_import", name], 1, f"no such volume: {name}")

        try:
            with tarfile.open(archive_file, "r:gz") as tar:
                for member in tar.getmembers():
                    if not member.isfile():
                        continue
                    rel_path = member.name[2:] if member.name.startswith("./") else member.name
                    self.volumes[name][rel_path] = tar.extractfile(member).read()
        except (OSError, tarfile.TarError) as e:
            raise RuntimeCommandError(["memory", "volume_import", name], 1, str(e)) from e

    # DeploymentController

    async def detect_compose(self) -> str:
        self.calls.append(("compose_detect",))
        if not self.compose_available:
            raise EnvironmentUnavailable("docker-compose or 'docker compose' is not available")
        return "memory compose"

    async def compose_down(self, project_dir: Path) -> None:
        self.calls.append(("compose_down", str(project_dir)))
        if self.fail_down:
            raise self._fail("compose_down", str(project_dir))
        self.deployments[str(project_dir)] = False

    async def compose_up(self, project_dir: Path) -> None:
        self.calls.append(("compose_up", str(project_dir)))
        if self.fail_up:
            raise self._fail("compose_up", str(project_dir))
        self.deployments[str(project_dir)] = True

    async def compose_status(self, project_dir: Path) -> str:
        state = "running" if self.deployments.get(str(project_dir)) else "stopped"
        return f"{project_dir}: {state}"

    def is_running(self, project_dir: Path) -> bool:
        return self.deployments.get(str(project_dir), False)

    def loaded_images(self) -> Iterable[str]:
        return sorted(self.images)
