"""Utility functions for snapshot backup/restore operations."""

import gzip
import hashlib
import json
import tarfile
from pathlib import Path
from typing import Any, Dict, Iterable, List

from .._utils import logger, timestamp_slug
from ..errors import ArchiveCorrupt

IMAGE_BLOB_SUFFIX = ".tar"
VOLUME_BLOB_SUFFIX = ".tar.gz"
BACKUP_INFO_FILE = "backup_info.json"
IMAGE_LIST_FILE = "image_list.txt"
VOLUME_LIST_FILE = "volume_list.txt"
RESTORE_LAUNCHER_FILE = "restore"


def sanitize_image_ref(ref: str) -> str:
    """Derive the blob filename for an image reference.

    ``/`` and ``:`` are replaced with ``_`` and ``.tar`` is appended. No
    mapping table is stored; restore re-derives the same name from the
    reference in image_list.txt.

    Args:
        ref: Image reference, e.g. ``registry.local:5000/team/app:1.2``

    Returns:
        Blob filename, e.g. ``registry.local_5000_team_app_1.2.tar``
    """
    return ref.replace("/", "_").replace(":", "_") + IMAGE_BLOB_SUFFIX


def volume_blob_name(name: str) -> str:
    return f"{name}{VOLUME_BLOB_SUFFIX}"


def root_dir_name(deployment: str) -> str:
    return f"{deployment}_backup"


def generate_archive_name(deployment: str) -> str:
    """Generate default archive filename.

    Returns:
        Filename in format: <deployment>_backup_YYYYmmdd_HHMMSS.tar.gz
    """
    return f"{deployment}_backup_{timestamp_slug()}.tar.gz"


def write_list(entries: Iterable[str], output_path: Path) -> None:
    """Write a newline-separated list, preserving order."""
    lines = [entry for entry in entries if entry]
    with open(output_path, "w") as f:
        f.write("".join(f"{line}\n" for line in lines))


def read_list(input_path: Path) -> List[str]:
    """Read a newline-separated list, skipping blank lines."""
    with open(input_path, "r") as f:
        return [line.strip() for line in f if line.strip()]


def _normalize_member(tarinfo: tarfile.TarInfo) -> tarfile.TarInfo:
    tarinfo.uid = tarinfo.gid = 0
    tarinfo.uname = tarinfo.gname = "root"
    return tarinfo


async def create_archive(source_dir: Path, output_path: Path) -> int:
    """Create a deterministic tar.gz archive from a directory.

    The directory itself becomes the archive root. Members are added in
    sorted order with normalized ownership, and the gzip header carries no
    timestamp, so identical trees produce identical archives.

    Args:
        source_dir: Directory to archive
        output_path: Output archive path

    Returns:
        Size of created archive in bytes
    """
    logger.info(f"Creating archive: {output_path}")

    paths = [source_dir] + sorted(source_dir.rglob("*"))
    with open(output_path, "wb") as raw:
        with gzip.GzipFile(filename="", mode="wb", fileobj=raw, mtime=0) as gz:
            with tarfile.open(fileobj=gz, mode="w") as tar:
                for path in paths:
                    arcname = Path(source_dir.name) / path.relative_to(source_dir)
                    tar.add(path, arcname=arcname.as_posix(), recursive=False, filter=_normalize_member)

    archive_size = output_path.stat().st_size
    logger.info(f"Archive created: {archive_size:,} bytes")

    return archive_size


def _check_members(tar: tarfile.TarFile, output_dir: Path) -> None:
    root = output_dir.resolve()
    for member in tar.getmembers():
        target = (root / member.name).resolve()
        if member.issym() or member.islnk() or root not in (target, *target.parents):
            raise ArchiveCorrupt(f"Unsafe archive member: {member.name}")


async def extract_archive(archive_path: Path, output_dir: Path) -> None:
    """Extract tar.gz archive to directory.

    Args:
        archive_path: Path to archive
        output_dir: Directory to extract to

    Raises:
        ArchiveCorrupt: Archive cannot be read or contains unsafe members
    """
    logger.info(f"Extracting archive: {archive_path} to {output_dir}")

    output_dir.mkdir(parents=True, exist_ok=True)

    try:
        with tarfile.open(archive_path, "r:*") as tar:
            if hasattr(tarfile, "data_filter"):
                tar.extractall(output_dir, filter="data")
            else:
                _check_members(tar, output_dir)
                tar.extractall(output_dir)
    except (tarfile.TarError, EOFError, OSError) as e:
        raise ArchiveCorrupt(f"Failed to extract archive {archive_path}: {e}") from e

    logger.info("Archive extracted successfully")


def locate_root(extract_dir: Path) -> Path:
    """Find the snapshot root directory inside an extraction directory.

    Args:
        extract_dir: Directory the archive was extracted into

    Returns:
        Path to the ``*backup*`` root directory

    Raises:
        ArchiveCorrupt: No root directory matches
    """
    if (extract_dir / BACKUP_INFO_FILE).is_file():
        return extract_dir

    candidates = sorted(
        (p for p in extract_dir.rglob("*backup*") if p.is_dir()),
        key=lambda p: (len(p.relative_to(extract_dir).parts), str(p)),
    )
    if not candidates:
        raise ArchiveCorrupt(f"Could not find backup directory in {extract_dir}")
    return candidates[0]


def compute_directory_checksum(directory: Path, exclude: Iterable[str] = (BACKUP_INFO_FILE,)) -> str:
    """Compute SHA-256 checksum of directory contents.

    Files are hashed in sorted order together with their relative paths.
    Top-level files named in ``exclude`` are skipped, which lets the
    metadata file carry the checksum of everything else.

    Args:
        directory: Directory to compute checksum for
        exclude: Top-level file names to leave out

    Returns:
        SHA-256 checksum as hex string with 'sha256:' prefix
    """
    sha256 = hashlib.sha256()
    excluded = set(exclude)

    for file_path in sorted(directory.rglob("*")):
        if not file_path.is_file():
            continue
        relative_path = file_path.relative_to(directory)
        if len(relative_path.parts) == 1 and relative_path.name in excluded:
            continue

        sha256.update(relative_path.as_posix().encode("utf-8"))
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(8192), b""):
                sha256.update(chunk)

    return f"sha256:{sha256.hexdigest()}"


async def save_backup_info(info: Dict[str, Any], output_path: Path) -> None:
    """Save backup_info.json.

    Args:
        info: Metadata dictionary
        output_path: Output file path
    """
    with open(output_path, "w") as f:
        json.dump(info, f, indent=2, default=str)

    logger.debug(f"Backup info saved: {output_path}")


async def load_backup_info(info_path: Path) -> Dict[str, Any]:
    """Load backup_info.json.

    Raises:
        ArchiveCorrupt: File is missing or is not valid JSON
    """
    try:
        with open(info_path, "r") as f:
            info = json.load(f)
    except FileNotFoundError as e:
        raise ArchiveCorrupt(f"{BACKUP_INFO_FILE} not found in snapshot") from e
    except json.JSONDecodeError as e:
        raise ArchiveCorrupt(f"Invalid {BACKUP_INFO_FILE}: {e}") from e

    logger.debug(f"Backup info loaded: {info_path}")
    return info
