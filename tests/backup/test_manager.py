"""Tests for SnapshotManager."""

import json
import tarfile
import pytest
from pathlib import Path

from compose_snapshot.config import SnapshotConfig
from compose_snapshot.errors import DescriptorMalformed, DescriptorNotFound, EnvironmentUnavailable
from compose_snapshot.runtime.memory import InMemoryRuntime
from compose_snapshot.backup import SnapshotManager
from compose_snapshot.backup.models import ArtifactKind, RestoreStage

from tests.utils import IMAGES, VOLUMES


def archive_members(path: Path):
    with tarfile.open(path, "r:gz") as tar:
        return set(tar.getnames())


def archive_backup_info(path: Path):
    with tarfile.open(path, "r:gz") as tar:
        return json.load(tar.extractfile("metro_backup/backup_info.json"))


def test_manager_initialization(snapshot_config):
    """Runtime is created from config when none is given."""
    manager = SnapshotManager(snapshot_config)

    assert isinstance(manager.runtime, InMemoryRuntime)
    assert manager.default_output_path().name.startswith("metro_backup_")
    assert manager.default_output_path().parent == Path.cwd()


@pytest.mark.asyncio
async def test_create_backup(snapshot_config, source_runtime, output_dir):
    manager = SnapshotManager(snapshot_config, runtime=source_runtime)

    result = await manager.create_backup(output_dir / "snapshot.tar.gz")

    archive = Path(result.archive_path)
    assert archive.exists()
    assert result.size_bytes == archive.stat().st_size
    assert result.deployment == "metro"
    assert result.inventory.images == sorted(IMAGES)
    assert result.warnings == []
    assert result.failed == []

    members = archive_members(archive)
    assert "metro_backup/images/postgres_16.tar" in members
    assert "metro_backup/volumes/db-data.tar.gz" in members
    assert "metro_backup/config/.env" in members
    assert "metro_backup/config/app-config/settings.json" in members

    info = archive_backup_info(archive)
    assert info["deployment"] == "metro"
    assert info["files"] == ["docker-compose.yml", ".env", "app-config/"]
    assert info["failures"] == []


@pytest.mark.asyncio
async def test_create_backup_default_output(snapshot_config, source_runtime, output_dir, monkeypatch):
    monkeypatch.chdir(output_dir)
    manager = SnapshotManager(snapshot_config, runtime=source_runtime)

    result = await manager.create_backup()

    archive = Path(result.archive_path)
    assert archive.parent == output_dir.resolve()
    assert archive.name.startswith("metro_backup_")
    assert list(output_dir.iterdir()) == [archive]


@pytest.mark.asyncio
async def test_partial_failure_round_trip(snapshot_config, source_runtime, output_dir, tmp_path):
    """One image fails to save; the snapshot still restores everything else."""
    source_runtime.fail_save.add("postgres:16")
    manager = SnapshotManager(snapshot_config, runtime=source_runtime)

    backup = await manager.create_backup(output_dir / "snapshot.tar.gz")

    assert len(backup.warnings) == 1
    assert [(a.kind, a.name) for a in backup.failed] == [(ArtifactKind.IMAGE, "postgres:16")]
    assert "metro_backup/images/postgres_16.tar" not in archive_members(Path(backup.archive_path))
    assert archive_backup_info(Path(backup.archive_path))["failures"][0]["name"] == "postgres:16"

    target_runtime = InMemoryRuntime(registry={"postgres:16": "postgres-layers"})
    restorer = SnapshotManager(snapshot_config, runtime=target_runtime, resolve_address=lambda: "10.0.0.5")
    result = await restorer.restore_backup(backup.archive_path, tmp_path / "target")

    assert result.ok
    assert len(result.images_loaded) == 2
    assert result.images_pulled == ["postgres:16"]
    assert target_runtime.volumes == VOLUMES


@pytest.mark.asyncio
async def test_round_trip_preserves_config(snapshot_config, snapshot_archive, deployment_dir, tmp_path):
    target = tmp_path / "target"
    manager = SnapshotManager(snapshot_config, runtime=InMemoryRuntime(), resolve_address=lambda: "172.16.0.9")

    result = await manager.restore_backup(snapshot_archive, target)

    assert result.ok
    for relative in ("docker-compose.yml", "app-config/settings.json"):
        assert (target / relative).read_bytes() == (deployment_dir / relative).read_bytes()
    expected_env = (deployment_dir / ".env").read_text().replace("HOST_IP=192.168.1.10", "HOST_IP=172.16.0.9")
    assert (target / ".env").read_text() == expected_env


@pytest.mark.asyncio
async def test_empty_deployment(tmp_path, output_dir):
    project = tmp_path / "empty"
    project.mkdir()
    (project / "docker-compose.yml").write_text("services: {}\n")
    (project / ".env").write_text("HOST_IP=127.0.0.1\n")
    config = SnapshotConfig(project_dir=str(project), runtime="memory")

    result = await SnapshotManager(config, runtime=InMemoryRuntime()).create_backup(output_dir / "empty.tar.gz")

    assert result.inventory.images == []
    assert result.inventory.volumes == []
    assert len(result.warnings) == 1
    assert "No images declared" in result.warnings[0]
    members = archive_members(Path(result.archive_path))
    assert "empty_backup/image_list.txt" in members
    assert "empty_backup/volume_list.txt" in members

    target = tmp_path / "target"
    target_runtime = InMemoryRuntime()
    manager = SnapshotManager(config, runtime=target_runtime, resolve_address=lambda: "10.0.0.5")
    restored = await manager.restore_backup(result.archive_path, target)

    assert restored.ok
    assert RestoreStage.STARTING in restored.stages
    assert restored.images_loaded == []
    assert restored.images_pulled == []
    assert restored.volumes_restored == []
    assert restored.warnings == []
    assert (target / ".env").read_text() == "HOST_IP=10.0.0.5\n"
    assert target_runtime.is_running(target.resolve())


@pytest.mark.asyncio
async def test_missing_volume_is_warning(snapshot_config, source_runtime, output_dir):
    del source_runtime.volumes["broker-data"]

    result = await SnapshotManager(snapshot_config, runtime=source_runtime).create_backup(output_dir / "s.tar.gz")

    assert len(result.warnings) == 1
    assert [a.name for a in result.failed] == ["broker-data"]


@pytest.mark.asyncio
async def test_backup_runtime_unavailable(snapshot_config, output_dir):
    manager = SnapshotManager(snapshot_config, runtime=InMemoryRuntime(available=False))

    with pytest.raises(EnvironmentUnavailable):
        await manager.create_backup(output_dir / "s.tar.gz")

    assert list(output_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_backup_missing_descriptor(snapshot_config, source_runtime, deployment_dir, output_dir):
    (deployment_dir / "docker-compose.yml").unlink()

    with pytest.raises(DescriptorNotFound):
        await SnapshotManager(snapshot_config, runtime=source_runtime).create_backup(output_dir / "s.tar.gz")


@pytest.mark.asyncio
async def test_backup_malformed_descriptor(snapshot_config, source_runtime, deployment_dir, output_dir):
    (deployment_dir / "docker-compose.yml").write_text("services: [oops\n")

    with pytest.raises(DescriptorMalformed):
        await SnapshotManager(snapshot_config, runtime=source_runtime).create_backup(output_dir / "s.tar.gz")

    assert source_runtime.calls_of("pull") == []
