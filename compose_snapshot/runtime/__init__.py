"""Container runtime adapters and their registry."""

from typing import Callable, Dict, Type

from .base import ContainerRuntime, DeploymentController, ImageStore, VolumeStore


def _load_docker() -> Type[ContainerRuntime]:
    from .docker_cli import DockerCLIRuntime
    return DockerCLIRuntime


def _load_memory() -> Type[ContainerRuntime]:
    from .memory import InMemoryRuntime
    return InMemoryRuntime


_RUNTIMES: Dict[str, Callable[[], Type[ContainerRuntime]]] = {
    "docker": _load_docker,
    "memory": _load_memory,
}


def register_runtime(name: str, loader: Callable[[], Type[ContainerRuntime]]) -> None:
    """Register a runtime adapter under ``name``."""
    _RUNTIMES[name] = loader


def create_runtime(config) -> ContainerRuntime:
    """Create the runtime adapter selected by ``config.runtime``.

    Raises:
        ValueError: If the runtime name is not registered
    """
    if config.runtime not in _RUNTIMES:
        raise ValueError(f"Unknown runtime: {config.runtime}. Available: {sorted(_RUNTIMES)}")
    runtime_class = _RUNTIMES[config.runtime]()
    return runtime_class.from_config(config)


__all__ = [
    "ContainerRuntime",
    "DeploymentController",
    "ImageStore",
    "VolumeStore",
    "create_runtime",
    "register_runtime",
]
