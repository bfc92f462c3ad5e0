"""Inventory extraction from compose deployment descriptors."""

from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field

from ._utils import logger
from .errors import DescriptorMalformed, DescriptorNotFound


class InventoryRecord(BaseModel):
    """Images and named volumes that belong to a deployment."""

    images: List[str] = Field(default_factory=list, description="Sorted unique image references")
    volumes: List[str] = Field(default_factory=list, description="Sorted unique volume names")

    @classmethod
    def build(cls, images, volumes) -> "InventoryRecord":
        return cls(images=sorted(set(images)), volumes=sorted(set(volumes)))


def _load_descriptor(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r") as f:
            document = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise DescriptorMalformed(f"Invalid YAML in {path}: {e}") from e

    if document is None:
        return {}
    if not isinstance(document, dict):
        raise DescriptorMalformed(f"Descriptor root must be a mapping: {path}")
    return document


def _service_images(document: Dict[str, Any], path: Path) -> List[str]:
    services = document.get("services") or {}
    if not isinstance(services, dict):
        raise DescriptorMalformed(f"'services' must be a mapping in {path}")

    images = []
    for service_name, service in services.items():
        if not isinstance(service, dict):
            continue
        image = service.get("image")
        if image is None:
            logger.debug(f"Service {service_name} has no image (build-only), skipping")
            continue
        images.append(str(image).strip())
    return [image for image in images if image]


def _named_volumes(document: Dict[str, Any], path: Path) -> List[str]:
    # Only the top-level block declares named volumes; per-service
    # ``volumes:`` lists are mounts and never contribute here.
    volumes = document.get("volumes") or {}
    if not isinstance(volumes, dict):
        raise DescriptorMalformed(f"Top-level 'volumes' must be a mapping in {path}")

    names = []
    for key, definition in volumes.items():
        name = key
        if isinstance(definition, dict) and isinstance(definition.get("name"), str):
            name = definition["name"]
        names.append(str(name))
    return names


def extract(
    descriptor_path: Union[str, Path],
    warn: Optional[Callable[[str], None]] = None,
) -> InventoryRecord:
    """Enumerate the images and named volumes declared by a compose file.

    Args:
        descriptor_path: Path to the compose file
        warn: Callback for non-fatal findings (defaults to logger.warning)

    Returns:
        InventoryRecord with deduplicated, sorted images and volumes

    Raises:
        DescriptorNotFound: The descriptor does not exist
        DescriptorMalformed: The descriptor is not a valid compose document
    """
    path = Path(descriptor_path)
    warn = warn or logger.warning

    if not path.is_file():
        raise DescriptorNotFound(f"Deployment descriptor not found: {path}")

    logger.info(f"Extracting inventory from {path.name}...")
    document = _load_descriptor(path)

    record = InventoryRecord.build(
        _service_images(document, path),
        _named_volumes(document, path),
    )

    if not record.images:
        warn(f"No images declared in {path.name}; the snapshot will contain no images")

    logger.info(f"Found {len(record.images)} images and {len(record.volumes)} volumes")
    for image in record.images:
        logger.info(f"  - image: {image}")
    for volume in record.volumes:
        logger.info(f"  - volume: {volume}")

    return record
