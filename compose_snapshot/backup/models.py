"""Data models for snapshot backup/restore operations."""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .._utils import logger
from ..inventory import InventoryRecord

FORMAT_VERSION = "1.0"
SUPPORTED_MAJOR_VERSION = 1
DEFAULT_ENV_FILE = ".env"
DEFAULT_HOST_ADDRESS_KEY = "HOST_IP"


class ArtifactKind(str, Enum):
    """Kind of artifact captured in a snapshot."""
    IMAGE = "image"
    VOLUME = "volume"
    CONFIG = "config"


class ArtifactResult(BaseModel):
    """Outcome of exporting or importing a single artifact."""

    kind: ArtifactKind
    name: str
    ok: bool
    reason: Optional[str] = None
    path: Optional[str] = None

    @classmethod
    def success(cls, kind: ArtifactKind, name: str, path: Optional[Path] = None) -> "ArtifactResult":
        return cls(kind=kind, name=name, ok=True, path=str(path) if path else None)

    @classmethod
    def failure(cls, kind: ArtifactKind, name: str, reason: str) -> "ArtifactResult":
        return cls(kind=kind, name=name, ok=False, reason=reason)


class ArtifactFailure(BaseModel):
    """Structured record of a failed export stored in backup_info.json."""

    kind: ArtifactKind
    name: str
    reason: str


class BackupInfo(BaseModel):
    """Snapshot archive metadata (backup_info.json)."""

    model_config = ConfigDict(extra="ignore")

    backup_date: datetime = Field(..., description="Snapshot creation timestamp")
    backup_version: str = Field(FORMAT_VERSION, description="Archive format version")
    deployment: str = Field(..., description="Deployment name")
    created_by: str = Field("unknown", description="user@host that created the snapshot")
    source_directory: str = Field("", description="Project directory on the source host")
    files: List[str] = Field(default_factory=list, description="Configuration paths under config/")
    env_file: Optional[str] = Field(None, description="Env file holding the host address, relative to config/")
    host_address_key: Optional[str] = Field(None, description="Env variable rewritten to the restoring host's address")
    tool_version: Optional[str] = Field(None, description="compose-snapshot version")
    checksum: str = Field("", description="SHA-256 checksum of payload (excluding this file)")
    failures: List[ArtifactFailure] = Field(default_factory=list, description="Artifacts whose export failed")

    @field_validator("backup_version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        if not re.fullmatch(r"\d+(\.\d+)*", v):
            raise ValueError(f"backup_version must be dotted digits, got {v!r}")
        return v

    @property
    def major_version(self) -> int:
        return int(self.backup_version.split(".")[0])


class RestoreStage(str, Enum):
    """Restore state machine stages."""
    VALIDATING = "VALIDATING"
    EXTRACTING = "EXTRACTING"
    CONFIGURING = "CONFIGURING"
    LOADING_IMAGES = "LOADING_IMAGES"
    RESTORING_VOLUMES = "RESTORING_VOLUMES"
    STARTING = "STARTING"
    DONE = "DONE"
    FAILED = "FAILED"


class BackupResult(BaseModel):
    """Summary of a backup run."""

    archive_path: str
    size_bytes: int
    deployment: str
    inventory: InventoryRecord
    artifacts: List[ArtifactResult] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @property
    def failed(self) -> List[ArtifactResult]:
        return [a for a in self.artifacts if not a.ok]


class RestoreResult(BaseModel):
    """Summary of a restore run."""

    state: RestoreStage = RestoreStage.VALIDATING
    stages: List[RestoreStage] = Field(default_factory=list)
    failed_stage: Optional[RestoreStage] = None
    error: Optional[str] = None
    target_dir: str = ""
    deployment: Optional[str] = None
    host_address: Optional[str] = None
    images_loaded: List[str] = Field(default_factory=list)
    images_pulled: List[str] = Field(default_factory=list)
    volumes_restored: List[str] = Field(default_factory=list)
    artifacts: List[ArtifactResult] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state == RestoreStage.DONE


@dataclass
class SnapshotContext:
    """Per-run working state threaded through every stage.

    Replaces shared temp directories and environment variables: each run owns
    its own root directory and collects its own warnings and results.
    """

    root_dir: Path
    target_dir: Optional[Path] = None
    compose_command: Optional[str] = None
    inventory: InventoryRecord = field(default_factory=InventoryRecord)
    info: Optional[BackupInfo] = None
    config_files: List[str] = field(default_factory=list)
    artifacts: List[ArtifactResult] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def images_dir(self) -> Path:
        return self.root_dir / "images"

    @property
    def volumes_dir(self) -> Path:
        return self.root_dir / "volumes"

    @property
    def config_dir(self) -> Path:
        return self.root_dir / "config"

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def record(self, result: ArtifactResult) -> ArtifactResult:
        self.artifacts.append(result)
        return result

    def failures(self) -> List[ArtifactFailure]:
        return [
            ArtifactFailure(kind=a.kind, name=a.name, reason=a.reason or "unknown")
            for a in self.artifacts
            if not a.ok
        ]
