"""Configuration management for compose-snapshot."""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Tuple


def _split_list(value: str) -> Tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class SnapshotConfig:
    """Deployment and runtime configuration for backup and restore."""
    project_dir: str = "."
    deployment: str = ""  # Empty means: use the project directory name
    descriptor: str = "docker-compose.yml"
    env_file: str = ".env"
    config_dirs: Tuple[str, ...] = field(default_factory=tuple)
    host_address_key: str = "HOST_IP"

    # Runtime settings
    runtime: str = "docker"  # docker, memory
    docker_binary: str = "docker"
    helper_image: str = "docker.io/library/alpine:latest"
    pull_attempts: int = 3
    command_timeout: float = 1800.0

    @classmethod
    def from_env(cls) -> 'SnapshotConfig':
        """Create config from environment variables."""
        return cls(
            project_dir=os.getenv("SNAPSHOT_PROJECT_DIR", "."),
            deployment=os.getenv("SNAPSHOT_DEPLOYMENT", ""),
            descriptor=os.getenv("SNAPSHOT_DESCRIPTOR", "docker-compose.yml"),
            env_file=os.getenv("SNAPSHOT_ENV_FILE", ".env"),
            config_dirs=_split_list(os.getenv("SNAPSHOT_CONFIG_DIRS", "")),
            host_address_key=os.getenv("SNAPSHOT_HOST_ADDRESS_KEY", "HOST_IP"),
            runtime=os.getenv("SNAPSHOT_RUNTIME", "docker"),
            docker_binary=os.getenv("SNAPSHOT_DOCKER_BINARY", "docker"),
            helper_image=os.getenv("SNAPSHOT_HELPER_IMAGE", "docker.io/library/alpine:latest"),
            pull_attempts=int(os.getenv("SNAPSHOT_PULL_ATTEMPTS", "3")),
            command_timeout=float(os.getenv("SNAPSHOT_COMMAND_TIMEOUT", "1800.0")),
        )

    def __post_init__(self):
        """Validate configuration."""
        if self.pull_attempts <= 0:
            raise ValueError(f"pull_attempts must be positive, got {self.pull_attempts}")
        if self.command_timeout <= 0:
            raise ValueError(f"command_timeout must be positive, got {self.command_timeout}")
        if not self.descriptor:
            raise ValueError("descriptor must not be empty")
        if not self.env_file:
            raise ValueError("env_file must not be empty")
        if not self.host_address_key:
            raise ValueError("host_address_key must not be empty")

    def with_overrides(self, **overrides) -> 'SnapshotConfig':
        """Return a copy with non-None overrides applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @property
    def project_path(self) -> Path:
        return Path(self.project_dir).resolve()

    @property
    def deployment_name(self) -> str:
        return self.deployment or self.project_path.name or "deployment"

    @property
    def descriptor_path(self) -> Path:
        return self.project_path / self.descriptor

    @property
    def env_file_path(self) -> Path:
        return self.project_path / self.env_file
