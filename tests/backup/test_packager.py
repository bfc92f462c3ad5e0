"""Tests for SnapshotPackager."""

import json
import os
import tarfile
import pytest
from pathlib import Path
from unittest.mock import patch

from compose_snapshot.errors import PackagingError
from compose_snapshot.inventory import InventoryRecord
from compose_snapshot.backup.models import ArtifactKind, ArtifactResult, SnapshotContext
from compose_snapshot.backup.packager import SnapshotPackager
from compose_snapshot.backup.utils import compute_directory_checksum


@pytest.fixture
def context(tmp_path):
    root = tmp_path / "staging" / "metro_backup"
    (root / "config").mkdir(parents=True)
    (root / "config" / "docker-compose.yml").write_text("services: {}\n")
    (root / "images").mkdir()
    (root / "volumes").mkdir()
    ctx = SnapshotContext(
        root_dir=root,
        inventory=InventoryRecord.build(["postgres:16", "nginx:1.27"], ["db-data"]),
    )
    ctx.config_files = ["docker-compose.yml"]
    return ctx


@pytest.fixture
def packager(tmp_path):
    return SnapshotPackager("metro", tmp_path / "metro")


@pytest.mark.asyncio
async def test_write_metadata(context, packager):
    context.record(ArtifactResult.failure(ArtifactKind.VOLUME, "db-data", "volume does not exist"))

    info = await packager.write_metadata(context)

    root = context.root_dir
    assert (root / "image_list.txt").read_text() == "nginx:1.27\npostgres:16\n"
    assert (root / "volume_list.txt").read_text() == "db-data\n"

    launcher = root / "restore"
    assert os.access(launcher, os.X_OK)
    assert launcher.read_text().startswith("#!/bin/sh")
    assert "compose-snapshot restore" in launcher.read_text()

    data = json.loads((root / "backup_info.json").read_text())
    for key in ("backup_date", "backup_version", "deployment", "created_by", "source_directory", "files"):
        assert key in data
    assert data["backup_version"] == "1.0"
    assert data["deployment"] == "metro"
    assert data["files"] == ["docker-compose.yml"]
    assert data["failures"] == [{"kind": "volume", "name": "db-data", "reason": "volume does not exist"}]
    assert data["env_file"] == ".env"
    assert data["host_address_key"] == "HOST_IP"
    assert data["checksum"] == compute_directory_checksum(root)
    assert context.info == info


@pytest.mark.asyncio
async def test_package(context, packager, tmp_path):
    output = tmp_path / "metro_backup_test.tar.gz"

    result = await packager.package(context, output)

    assert result == output
    assert output.exists()
    assert not output.with_name(output.name + ".partial").exists()
    with tarfile.open(output, "r:gz") as tar:
        names = set(tar.getnames())
    assert {
        "metro_backup",
        "metro_backup/backup_info.json",
        "metro_backup/image_list.txt",
        "metro_backup/volume_list.txt",
        "metro_backup/restore",
        "metro_backup/config/docker-compose.yml",
        "metro_backup/images",
        "metro_backup/volumes",
    } <= names


@pytest.mark.asyncio
async def test_package_missing_output_dir(context, packager, tmp_path):
    with pytest.raises(PackagingError, match="does not exist"):
        await packager.package(context, tmp_path / "nowhere" / "out.tar.gz")


@pytest.mark.asyncio
async def test_package_failure_leaves_no_archive(context, packager, tmp_path):
    output = tmp_path / "out.tar.gz"
    partial = tmp_path / "out.tar.gz.partial"

    async def disk_full(source_dir: Path, output_path: Path) -> int:
        output_path.write_bytes(b"\x1f\x8b half an archive")
        raise OSError(28, "No space left on device")

    with patch("compose_snapshot.backup.packager.create_archive", disk_full):
        with pytest.raises(PackagingError, match="No space left"):
            await packager.package(context, output)

    assert not output.exists()
    assert not partial.exists()


@pytest.mark.asyncio
async def test_package_replaces_existing_archive(context, packager, tmp_path):
    output = tmp_path / "out.tar.gz"
    output.write_bytes(b"stale")

    await packager.package(context, output)

    with tarfile.open(output, "r:gz") as tar:
        assert "metro_backup/backup_info.json" in tar.getnames()


@pytest.mark.asyncio
async def test_write_metadata_records_env_file(context, tmp_path):
    packager = SnapshotPackager("metro", tmp_path / "metro", env_file="deploy/app.env", host_address_key="EDGE_ADDR")

    info = await packager.write_metadata(context)

    data = json.loads((context.root_dir / "backup_info.json").read_text())
    assert data["env_file"] == "deploy/app.env"
    assert data["host_address_key"] == "EDGE_ADDR"
    assert info.env_file == "deploy/app.env"
