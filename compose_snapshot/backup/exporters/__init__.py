"""Artifact exporters for backup/restore operations."""

from .image_exporter import ImageExporter
from .volume_exporter import VolumeExporter
from .config_exporter import ConfigExporter, update_env_value

__all__ = ["ImageExporter", "VolumeExporter", "ConfigExporter", "update_env_value"]
