"""Production runtime adapter driving the docker and compose CLIs."""

import asyncio
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from .._utils import logger
from ..errors import EnvironmentUnavailable, RuntimeCommandError
from .base import ContainerRuntime


@dataclass
class CommandResult:
    """Outcome of a finished CLI invocation."""
    argv: List[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class DockerCLIRuntime(ContainerRuntime):
    """Runtime adapter that shells out to ``docker`` and ``docker compose``.

    Every call is a blocking subprocess awaited to completion; nothing runs
    in the background.
    """

    name = "docker"

    def __init__(
        self,
        docker_binary: str = "docker",
        helper_image: str = "docker.io/library/alpine:latest",
        pull_attempts: int = 3,
        command_timeout: float = 1800.0,
    ):
        """Initialize the adapter.

        Args:
            docker_binary: Container runtime CLI to invoke
            helper_image: Image used for throwaway volume helper containers
            pull_attempts: Attempts per image pull before giving up
            command_timeout: Seconds before a single command is killed
        """
        self.docker_binary = docker_binary
        self.helper_image = helper_image
        self.pull_attempts = pull_attempts
        self.command_timeout = command_timeout
        self._compose_cmd: Optional[List[str]] = None

        # Cache retry decorator to avoid recreation overhead
        self._retry_decorator = self._get_retry_decorator()

    @classmethod
    def from_config(cls, config) -> "DockerCLIRuntime":
        return cls(
            docker_binary=config.docker_binary,
            helper_image=config.helper_image,
            pull_attempts=config.pull_attempts,
            command_timeout=config.command_timeout,
        )

    def _get_retry_decorator(self):
        """Get retry decorator for network-bound commands."""
        return retry(
            stop=stop_after_attempt(self.pull_attempts),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type(RuntimeCommandError),
            reraise=True,
        )

    async def _run(
        self,
        *args: str,
        cwd: Optional[Path] = None,
        check: bool = True,
    ) -> CommandResult:
        """Run a command and wait for it to finish.

        Args:
            *args: Full argv
            cwd: Working directory for the command
            check: Raise RuntimeCommandError on non-zero exit

        Returns:
            CommandResult with decoded output
        """
        argv = list(args)
        logger.debug(f"Running: {' '.join(argv)}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(cwd) if cwd else None,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise RuntimeCommandError(argv, 127, str(e)) from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.command_timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise RuntimeCommandError(argv, None)

        result = CommandResult(
            argv=argv,
            returncode=proc.returncode,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
        )
        if check and not result.ok:
            raise RuntimeCommandError(argv, result.returncode, result.stderr)
        return result

    async def _docker(self, *args: str, **kwargs) -> CommandResult:
        return await self._run(self.docker_binary, *args, **kwargs)

    # Runtime availability

    async def check_available(self) -> None:
        try:
            await self._docker("info")
        except RuntimeCommandError as e:
            raise EnvironmentUnavailable(f"Container runtime is not running or not accessible: {e}") from e

    # ImageStore

    async def pull_image(self, ref: str) -> None:
        await self._retry_decorator(self._docker)("pull", ref)

    async def image_exists(self, ref: str) -> bool:
        result = await self._docker("image", "inspect", ref, check=False)
        return result.ok

    async def save_image(self, ref: str, output_file: Path) -> None:
        output_file.parent.mkdir(parents=True, exist_ok=True)
        await self._docker("save", "-o", str(output_file), ref)

    async def load_image(self, input_file: Path) -> None:
        await self._docker("load", "-i", str(input_file))

    # VolumeStore

    async def volume_exists(self, name: str) -> bool:
        result = await self._docker("volume", "inspect", name, check=False)
        return result.ok

    async def create_volume(self, name: str) -> None:
        # `volume create` is a no-op for an existing volume
        await self._docker("volume", "create", name)

    async def export_volume(self, name: str, output_dir: Path) -> Path:
        output_dir.mkdir(parents=True, exist_ok=True)
        archive_name = f"{name}.tar.gz"
        await self._docker(
            "run", "--rm",
            "-v", f"{name}:/backup-source:ro",
            "-v", f"{output_dir.resolve()}:/backup-dest",
            self.helper_image,
            "tar", "czf", f"/backup-dest/{archive_name}", "-C", "/backup-source", ".",
        )
        return output_dir / archive_name

    async def import_volume(self, name: str, archive_file: Path) -> None:
        await self._docker(
            "run", "--rm",
            "-v", f"{name}:/restore-dest",
            "-v", f"{archive_file.parent.resolve()}:/backup-source:ro",
            self.helper_image,
            "tar", "xzf", f"/backup-source/{archive_file.name}", "-C", "/restore-dest",
        )

    # DeploymentController

    async def detect_compose(self) -> str:
        if shutil.which("docker-compose"):
            self._compose_cmd = ["docker-compose"]
        else:
            result = await self._docker("compose", "version", check=False)
            if not result.ok:
                raise EnvironmentUnavailable("docker-compose or 'docker compose' is not available")
            self._compose_cmd = [self.docker_binary, "compose"]

        command = " ".join(self._compose_cmd)
        logger.info(f"Using compose command: {command}")
        return command

    async def _compose(self, project_dir: Path, *args: str, check: bool = True) -> CommandResult:
        if self._compose_cmd is None:
            await self.detect_compose()
        return await self._run(*self._compose_cmd, *args, cwd=project_dir, check=check)

    async def compose_down(self, project_dir: Path) -> None:
        await self._compose(project_dir, "down", "--remove-orphans")

    async def compose_up(self, project_dir: Path) -> None:
        await self._compose(project_dir, "up", "-d")

    async def compose_status(self, project_dir: Path) -> str:
        result = await self._compose(project_dir, "ps", check=False)
        return result.stdout
