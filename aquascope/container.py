"""Sandboxed workspace in which Aquascope is run on a single source file."""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)

DEFAULT_PROJECT_PATH = "aquascope_tmp_proj"
COMMAND_TIMEOUT = 20.0

_DEBUG_ENV = {"RUST_LOG": "debug", "RUST_BACKTRACE": "1"}


class ContainerError(RuntimeError):
    """An operation inside the container failed."""


class CommandTimeoutError(ContainerError):
    """A command ran longer than the container allows."""

    def __init__(self, timeout: float) -> None:
        super().__init__(
            f"Command execution took longer than {int(timeout * 1000)} ms"
        )
        self.timeout = timeout


@dataclass
class SingleFileRequest:
    """A request carrying one Rust source file and optional configuration."""

    code: str
    config: Any = None

    @classmethod
    def from_json(cls, data: Any) -> SingleFileRequest:
        if not isinstance(data, Mapping):
            raise ValueError("request body must be a JSON object")
        code = data.get("code")
        if not isinstance(code, str):
            raise ValueError("missing field `code`")
        return cls(code=code, config=data.get("config"))


@dataclass
class ServerResponse:
    """Outcome of running a command: success flag and captured output."""

    success: bool
    stdout: str
    stderr: str

    @classmethod
    def from_output(cls, stdout: str, stderr: str) -> ServerResponse:
        # Anything on stdout is taken as a result worth reporting.
        return cls(success=bool(stdout.strip()), stdout=stdout, stderr=stderr)

    def to_json(self) -> dict[str, Any]:
        return {"success": self.success, "stdout": self.stdout, "stderr": self.stderr}


@dataclass
class CommandSpec:
    """A program invocation: arguments, extra environment and working directory."""

    args: list[str]
    cwd: Path
    env: dict[str, str] = field(default_factory=dict)


class Container:
    """A local workspace holding a fresh Cargo project."""

    def __init__(
        self,
        workspace: Path,
        *,
        owned_dir: tempfile.TemporaryDirectory[str] | None = None,
        timeout: float = COMMAND_TIMEOUT,
    ) -> None:
        self.workspace = Path(workspace)
        self.project_dir: str | None = None
        self.timeout = timeout
        self._owned_dir = owned_dir

    @classmethod
    async def create(cls, workspace: str | os.PathLike[str] | None = None) -> Container:
        """Set up a container in ``workspace`` (a fresh temporary dir if None)."""
        owned = None
        if workspace is None:
            try:
                owned = tempfile.TemporaryDirectory()
            except OSError as exc:
                raise ContainerError(
                    f"Unable to create temporary local directory {exc}"
                ) from exc
            workspace = owned.name
        container = cls(Path(workspace), owned_dir=owned)
        try:
            await container._cargo_new()
        except BaseException:
            await container.cleanup()
            raise
        return container

    async def __aenter__(self) -> Container:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.cleanup()

    @property
    def cwd(self) -> Path:
        if self.project_dir is None:
            return self.workspace
        return self.workspace / self.project_dir

    async def exec_output(
        self,
        args: list[str],
        env: Mapping[str, str] | None = None,
        cwd: str | os.PathLike[str] | None = None,
    ) -> tuple[str, str]:
        """Run ``args`` and return ``(stdout, stderr)``."""
        full_env = {**os.environ, **(env or {})}
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                cwd=str(cwd if cwd is not None else self.cwd),
                env=full_env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ContainerError(f"Unable to execute local command {exc}") from exc

        try:
            out, err = await asyncio.wait_for(process.communicate(), self.timeout)
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            raise CommandTimeoutError(self.timeout) from exc

        stdout = out.decode("utf-8", errors="replace")
        stderr = err.decode("utf-8", errors="replace")
        log.info("%s", stderr)
        return stdout, stderr

    async def _cargo_new(self) -> None:
        if self.project_dir is not None:
            log.warning("Attempt to create a second project directory ignored")
            return
        stdout, stderr = await self.exec_output(
            ["cargo", "new", "--bin", DEFAULT_PROJECT_PATH, "--quiet"]
        )
        if stderr.strip():
            log.error("%s", stderr)
            raise ContainerError(f"`cargo new` failed {stderr}")
        log.debug("Cargo output %s", stdout)
        self.project_dir = DEFAULT_PROJECT_PATH

    def main_abs_path(self) -> str:
        return str(self.cwd / "src" / "main.rs")

    async def write_source_code(self, code: str) -> None:
        try:
            Path(self.main_abs_path()).write_text(code, encoding="utf-8")
        except OSError as exc:
            raise ContainerError(f"Unable to create output directory: {exc}") from exc

    def permissions_command(self) -> CommandSpec:
        return CommandSpec(
            args=["cargo", "--quiet", "aquascope", "permissions"],
            cwd=self.cwd,
            env=dict(_DEBUG_ENV),
        )

    def interpreter_command(self, request: SingleFileRequest) -> CommandSpec:
        args = ["cargo", "--quiet", "aquascope"]
        if isinstance(request.config, Mapping) and "shouldFail" in request.config:
            args.append("--should-fail")
        args.append("interpreter")
        return CommandSpec(args=args, cwd=self.cwd, env=dict(_DEBUG_ENV))

    async def _run(self, request: SingleFileRequest, spec: CommandSpec) -> ServerResponse:
        await self.write_source_code(request.code)
        stdout, stderr = await self.exec_output(spec.args, spec.env, spec.cwd)
        return ServerResponse.from_output(stdout, stderr)

    async def permissions(self, request: SingleFileRequest) -> ServerResponse:
        return await self._run(request, self.permissions_command())

    async def interpreter(self, request: SingleFileRequest) -> ServerResponse:
        return await self._run(request, self.interpreter_command(request))

    async def cleanup(self) -> None:
        """Remove the workspace if this container created it."""
        if self._owned_dir is not None:
            owned, self._owned_dir = self._owned_dir, None
            await asyncio.to_thread(owned.cleanup)