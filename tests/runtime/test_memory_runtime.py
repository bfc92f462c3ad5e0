"""Tests for the in-memory runtime and the runtime registry."""

import pytest

from compose_snapshot.config import SnapshotConfig
from compose_snapshot.errors import EnvironmentUnavailable, RuntimeCommandError
from compose_snapshot.runtime import ContainerRuntime, create_runtime, register_runtime
from compose_snapshot.runtime.docker_cli import DockerCLIRuntime
from compose_snapshot.runtime.memory import InMemoryRuntime


def test_create_runtime():
    assert isinstance(create_runtime(SnapshotConfig(runtime="docker")), DockerCLIRuntime)
    assert isinstance(create_runtime(SnapshotConfig(runtime="memory")), InMemoryRuntime)


def test_create_unknown_runtime():
    with pytest.raises(ValueError, match="Unknown runtime: containerd"):
        create_runtime(SnapshotConfig(runtime="containerd"))


def test_register_runtime():
    class OfflineRuntime(InMemoryRuntime):
        name = "offline"

    register_runtime("offline", lambda: OfflineRuntime)

    runtime = create_runtime(SnapshotConfig(runtime="offline"))
    assert isinstance(runtime, ContainerRuntime)
    assert runtime.name == "offline"


@pytest.mark.asyncio
async def test_unavailable():
    with pytest.raises(EnvironmentUnavailable):
        await InMemoryRuntime(available=False).check_available()
    with pytest.raises(EnvironmentUnavailable):
        await InMemoryRuntime(compose_available=False).detect_compose()


@pytest.mark.asyncio
async def test_image_blob_round_trip(tmp_path):
    source = InMemoryRuntime(registry={"app:1": "layers"})
    blob = tmp_path / "app_1.tar"

    await source.pull_image("app:1")
    await source.save_image("app:1", blob)

    target = InMemoryRuntime()
    await target.load_image(blob)
    assert list(target.loaded_images()) == ["app:1"]


@pytest.mark.asyncio
async def test_injected_failures(tmp_path):
    runtime = InMemoryRuntime(registry={"app:1": "layers"}, volumes={"data": {}})
    runtime.fail_pull.add("app:1")
    runtime.fail_export.add("data")

    with pytest.raises(RuntimeCommandError, match="injected failure"):
        await runtime.pull_image("app:1")
    with pytest.raises(RuntimeCommandError):
        await runtime.export_volume("data", tmp_path)
    assert runtime.calls_of("pull") == [("pull", "app:1")]


@pytest.mark.asyncio
async def test_import_requires_existing_volume(tmp_path):
    runtime = InMemoryRuntime(volumes={"data": {"a.txt": b"a"}})
    archive = await runtime.export_volume("data", tmp_path)

    with pytest.raises(RuntimeCommandError, match="no such volume"):
        await runtime.import_volume("other", archive)

    await runtime.create_volume("other")
    await runtime.import_volume("other", archive)
    assert runtime.volumes["other"] == {"a.txt": b"a"}


@pytest.mark.asyncio
async def test_compose_state(tmp_path):
    runtime = InMemoryRuntime()

    await runtime.compose_up(tmp_path)
    assert runtime.is_running(tmp_path)
    assert await runtime.compose_status(tmp_path) == f"{tmp_path}: running"

    await runtime.compose_down(tmp_path)
    assert not runtime.is_running(tmp_path)
