"""Command line entry point: ``compose-snapshot backup|restore``."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from ._utils import logger
from .backup import SnapshotManager
from .config import SnapshotConfig
from .errors import SnapshotError

EXAMPLES = """\
examples:
  compose-snapshot backup
  compose-snapshot backup my_custom_backup.tar.gz
  compose-snapshot restore app_backup_20250930_143022.tar.gz
  compose-snapshot restore backup.tar.gz /opt/app
"""


def setup_logging(verbose: bool = False) -> None:
    """Attach a stdout handler to the package logger."""
    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)
    logger.propagate = False
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - [%(name)s] - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))
    logger.addHandler(console_handler)


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--project-dir", help="Deployment project directory (default: $SNAPSHOT_PROJECT_DIR or .)")
    parser.add_argument("--deployment", help="Deployment name (default: project directory name)")
    parser.add_argument("--descriptor", help="Compose file relative to the project directory")
    parser.add_argument("--env-file", help="Env file relative to the project directory")
    parser.add_argument(
        "--config-dir",
        action="append",
        help="Nested configuration directory to include (repeatable)",
    )
    parser.add_argument("--runtime", help="Runtime adapter: docker or memory")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="compose-snapshot",
        description="Back up and restore a docker compose deployment as a portable archive",
        epilog=EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command")

    backup = subparsers.add_parser("backup", help="Create a snapshot archive of the deployment")
    backup.add_argument(
        "output_file",
        nargs="?",
        help="Archive to write (default: <deployment>_backup_TIMESTAMP.tar.gz)",
    )
    _add_common_options(backup)

    restore = subparsers.add_parser("restore", help="Restore a deployment from a snapshot archive")
    restore.add_argument("archive", help="Snapshot archive, or an extracted snapshot directory")
    restore.add_argument("target_dir", nargs="?", help="Restore destination (default: current directory)")
    _add_common_options(restore)

    subparsers.add_parser("help", help="Show this help")
    return parser


def build_config(args: argparse.Namespace) -> SnapshotConfig:
    return SnapshotConfig.from_env().with_overrides(
        project_dir=args.project_dir,
        deployment=args.deployment,
        descriptor=args.descriptor,
        env_file=args.env_file,
        config_dirs=tuple(args.config_dir) if args.config_dir else None,
        runtime=args.runtime,
    )


async def _backup(manager: SnapshotManager, output_file: Optional[str]) -> None:
    result = await manager.create_backup(output_file)
    archive = Path(result.archive_path)
    logger.info("Backup completed successfully!")
    if result.warnings:
        logger.info(f"Completed with {len(result.warnings)} warnings; the snapshot is usable but incomplete")
    logger.info("To restore on a target system:")
    logger.info(f"  Option 1 - Extract and run the launcher: tar -xzf {archive.name} && ./<deployment>_backup/restore [target_dir]")
    logger.info(f"  Option 2 - Use this tool directly: compose-snapshot restore {archive.name} [target_dir]")


async def _restore(
    manager: SnapshotManager,
    archive: str,
    target_dir: Optional[str],
    env_file: Optional[str] = None,
) -> None:
    # Only an explicit --env-file overrides the path recorded in the snapshot
    result = await manager.restore_backup(archive, target_dir, env_file=env_file)
    logger.info("Restoration completed successfully!")
    logger.info(
        f"Images loaded: {len(result.images_loaded)}, pulled: {len(result.images_pulled)}, "
        f"volumes restored: {len(result.volumes_restored)}"
    )
    if result.warnings:
        logger.info(f"Completed with {len(result.warnings)} warnings")


def run(argv: Optional[List[str]] = None) -> int:
    """Parse arguments and dispatch to backup or restore.

    Returns:
        Process exit code
    """
    argv = list(sys.argv[1:] if argv is None else argv)
    parser = build_parser()

    if not argv or argv[0] == "help":
        parser.print_help()
        return 0

    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        # argparse exits 0 for --help and 2 for usage errors
        return 0 if e.code in (0, None) else 1

    setup_logging(args.verbose)

    try:
        config = build_config(args)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    operation = args.command
    try:
        manager = SnapshotManager(config)
        if operation == "backup":
            asyncio.run(_backup(manager, args.output_file))
        else:
            asyncio.run(_restore(manager, args.archive, args.target_dir, args.env_file))
    except SnapshotError as e:
        if e.stage:
            logger.error(f"{operation.capitalize()} failed during {e.stage}: {e}")
        else:
            logger.error(f"{operation.capitalize()} failed: {e}")
        return 1
    except (ValueError, OSError) as e:
        logger.error(f"{operation.capitalize()} failed: {e}")
        return 1

    return 0


def main() -> None:
    """Main entry point."""
    sys.exit(run())


if __name__ == "__main__":
    main()
