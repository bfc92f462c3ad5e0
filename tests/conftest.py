"""Global pytest configuration and fixtures."""

import pytest
import pytest_asyncio
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from compose_snapshot.backup import SnapshotManager
from compose_snapshot.config import SnapshotConfig
from compose_snapshot.runtime.memory import InMemoryRuntime
from tests.utils import COMPOSE_FILE, ENV_FILE, IMAGES, VOLUMES


@pytest.fixture
def deployment_dir(tmp_path):
    """Create a sample compose project with env file and a nested config dir."""
    project = tmp_path / "metro"
    project.mkdir()
    (project / "docker-compose.yml").write_text(COMPOSE_FILE)
    (project / ".env").write_text(ENV_FILE)
    (project / "app-config").mkdir()
    (project / "app-config" / "settings.json").write_text('{"zones": 4}')
    return project


@pytest.fixture
def snapshot_config(deployment_dir):
    """SnapshotConfig pointing at the sample project."""
    return SnapshotConfig(
        project_dir=str(deployment_dir),
        config_dirs=("app-config",),
        runtime="memory",
    )


@pytest.fixture
def source_runtime():
    """Runtime on the source host: images pullable, volumes populated."""
    return InMemoryRuntime(registry=IMAGES, volumes=VOLUMES)


@pytest.fixture
def target_runtime():
    """Runtime on a fresh target host: no network access, nothing local."""
    return InMemoryRuntime()


@pytest.fixture
def output_dir(tmp_path):
    path = tmp_path / "out"
    path.mkdir()
    return path


@pytest_asyncio.fixture
async def snapshot_archive(snapshot_config, source_runtime, output_dir):
    """A complete snapshot archive of the sample deployment."""
    manager = SnapshotManager(snapshot_config, runtime=source_runtime)
    result = await manager.create_backup(output_dir / "metro_backup_20250930_143022.tar.gz")
    return Path(result.archive_path)
