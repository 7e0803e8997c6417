"""Claude CLI process adapter.

This module isolates process spawning and output parsing from the session
bookkeeping so changes in the CLI's flags or output shape stay localized here.
"""

from __future__ import annotations

import asyncio
import json
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

from claude_slack.errors import ClaudeSlackError, ClaudeTimeout, ProcessFailed, SpawnFailed
from claude_slack.providers.command import probe_args

DEFAULT_TIMEOUT_SECONDS = 60.0
TERMINATE_GRACE_SECONDS = 5.0


@dataclass
class ClaudeResult:
    """Normalized result of one Claude CLI run."""

    text: str
    session_id: str | None = None
    usage: dict[str, Any] = field(default_factory=dict)
    cost_usd: float | None = None
    raw: dict[str, Any] | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ClaudeResult":
        """Build a result from the CLI's JSON record (snake or camel case keys)."""
        text = payload.get("result")
        if not isinstance(text, str):
            text = payload.get("text")
        session_id = payload.get("session_id") or payload.get("sessionId")
        usage = payload.get("usage")
        cost = payload.get("total_cost_usd")
        if cost is None:
            cost = payload.get("cost")
        try:
            cost_usd = float(cost) if cost is not None else None
        except (TypeError, ValueError):
            cost_usd = None
        return cls(
            text=text if isinstance(text, str) else "",
            session_id=str(session_id) if session_id else None,
            usage=usage if isinstance(usage, dict) else {},
            cost_usd=cost_usd,
            raw=payload,
        )


def parse_output(stdout: str) -> ClaudeResult:
    """
    Parse CLI stdout into a result.

    The CLI can print diagnostic lines before its JSON payload, so the first
    line that decodes to a JSON object wins. With no such line the trimmed
    output is returned as plain text.
    """
    for line in stdout.strip().splitlines():
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            data = json.loads(line)
        except ValueError:
            continue
        if isinstance(data, dict):
            return ClaudeResult.from_payload(data)
    return ClaudeResult(text=stdout.strip())


class ClaudeCLI:
    """Thin adapter that runs the Claude binary as a child process."""

    def __init__(
        self,
        binary: str = "claude",
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        env: dict[str, str] | None = None,
    ):
        self.binary = binary
        self.timeout_seconds = timeout_seconds
        self.env = env

    @staticmethod
    def check_binary(binary: str = "claude") -> tuple[bool, str]:
        """Best-effort check that the binary is installed, without running it."""
        path = shutil.which(binary)
        if path:
            return True, f"Found {binary} at {path}"
        return False, f"{binary} not found on PATH"

    def _build_env(self) -> dict[str, str]:
        env = dict(os.environ)
        if self.env:
            env.update(self.env)
        env["TERM"] = "dumb"
        return env

    async def invoke(self, args: list[str], working_dir: str | Path) -> ClaudeResult:
        """
        Run the CLI once and parse its output.

        Arguments are passed as a vector, never through a shell. Nothing is
        retried: a failed run may already have billed or edited files.

        Raises:
            SpawnFailed: the binary could not be started.
            ClaudeTimeout: the run exceeded ``timeout_seconds``; the process
                has been terminated.
            ProcessFailed: the process exited with a nonzero code.
        """
        try:
            process = await asyncio.create_subprocess_exec(
                self.binary,
                *args,
                cwd=str(working_dir),
                env=self._build_env(),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise SpawnFailed(self.binary, str(e)) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            await self._terminate(process)
            raise ClaudeTimeout(self.timeout_seconds) from None

        out_text = stdout.decode("utf-8", errors="replace") if stdout else ""
        err_text = stderr.decode("utf-8", errors="replace") if stderr else ""

        if process.returncode != 0:
            raise ProcessFailed(process.returncode, err_text)

        return parse_output(out_text)

    @staticmethod
    async def _terminate(process: asyncio.subprocess.Process) -> None:
        """SIGTERM the process, escalating to SIGKILL if it lingers."""
        try:
            process.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=TERMINATE_GRACE_SECONDS)
        except asyncio.TimeoutError:
            logger.warning(f"Claude process {process.pid} ignored SIGTERM; killing")
            try:
                process.kill()
            except ProcessLookupError:
                return
            await process.wait()

    async def probe_integration(self, name: str, working_dir: str | Path) -> bool:
        """Return True when ``--list-mcp-servers`` mentions ``name``."""
        try:
            result = await self.invoke(probe_args(), working_dir)
        except ClaudeSlackError as e:
            logger.debug(f"MCP probe failed: {e}")
            return False
        if name in result.text:
            return True
        return bool(result.raw) and name in json.dumps(result.raw, ensure_ascii=False)
