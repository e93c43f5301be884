"""AppleScript execution for the desktop players on macOS.

Scripts run through ``osascript`` with a timeout; callers get a
``(success, output)`` pair instead of exceptions. All user supplied values
must go through :func:`escape` before being embedded in a script.
"""

import asyncio
import logging
import shutil
import subprocess
import sys
from typing import Any, Dict, List, Optional, Sequence, Tuple

from playdeck.domain.playback.backends import CommandResult, PlaybackBackend

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30
FIELD_SEPARATOR = "|||"


def is_available() -> bool:
    """Check if AppleScript is available (macOS with osascript)."""
    return sys.platform == "darwin" and shutil.which("osascript") is not None


def escape(value: str) -> str:
    """Escape a string for safe use inside an AppleScript string literal.

    Backslashes are escaped first, then quotes.
    """
    return value.replace("\\", "\\\\").replace('"', '\\"')


def run_applescript(script: str, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> Tuple[bool, str]:
    """Execute AppleScript and return (success, output/error)."""
    try:
        result = subprocess.run(
            ["osascript", "-e", script],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        return False, f"AppleScript timed out after {timeout:g} seconds"
    except OSError as exc:
        return False, str(exc)
    if result.returncode == 0:
        return True, result.stdout.strip()
    return False, result.stderr.strip()


def run_command(args: Sequence[str], timeout: float = DEFAULT_TIMEOUT_SECONDS) -> Tuple[bool, str]:
    """Run a plain command such as ``open -a Spotify``; errors read like the shell's."""
    try:
        result = subprocess.run(list(args), capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired:
        return False, f"Command failed: {' '.join(args)} timed out"
    except OSError as exc:
        return False, f"Command failed: {' '.join(args)}\n{exc}"
    if result.returncode == 0:
        return True, result.stdout.strip()
    return False, f"Command failed: {' '.join(args)}\n{result.stderr.strip()}"


class AppleScriptRunner:
    """Async facade so scripts never block the engine loop."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT_SECONDS) -> None:
        self.timeout = timeout

    @property
    def available(self) -> bool:
        return is_available()

    async def run(self, script: str) -> Tuple[bool, str]:
        ok, output = await asyncio.to_thread(run_applescript, script, self.timeout)
        if not ok:
            logger.debug("AppleScript failed: %s", output)
        return ok, output

    async def command(self, args: Sequence[str]) -> Tuple[bool, str]:
        return await asyncio.to_thread(run_command, args, self.timeout)


def split_fields(output: str) -> List[str]:
    return [field.strip() for field in output.split(FIELD_SEPARATOR)]


class ScriptedBackend(PlaybackBackend):
    """Shared plumbing for backends driven by AppleScript."""

    app_name = ""

    def __init__(self, runner: Optional[AppleScriptRunner] = None) -> None:
        self.runner = runner or AppleScriptRunner()

    def _unavailable(self) -> CommandResult:
        return CommandResult.failure(f"Command failed: {self.app_name} can only be controlled on macOS")

    async def _script(self, action: str, script: str) -> CommandResult:
        if not self.runner.available:
            return self._unavailable()
        ok, output = await self.runner.run(script)
        if not ok:
            logger.warning("%s %s failed: %s", self.app_name, action, output)
            return CommandResult.failure(output or f"{action} failed")
        if output.startswith("ERROR:"):
            return CommandResult.failure(output[len("ERROR:"):])
        return CommandResult.success(output)

    async def _query(self, action: str, script: str) -> Optional[str]:
        result = await self._script(action, script)
        return result.data if result.ok else None

    def tell(self, body: str) -> str:
        return f'tell application "{self.app_name}" to {body}'

    async def play(self, device_id: Optional[str] = None) -> CommandResult:
        return await self._script("play", self.tell("play"))

    async def pause(self, device_id: Optional[str] = None) -> CommandResult:
        return await self._script("pause", self.tell("pause"))

    async def next(self, device_id: Optional[str] = None) -> CommandResult:
        return await self._script("next", self.tell("next track"))

    async def previous(self, device_id: Optional[str] = None) -> CommandResult:
        return await self._script("previous", self.tell("previous track"))

    async def launch(self, options: Optional[Dict[str, Any]] = None) -> CommandResult:
        if not self.runner.available:
            return self._unavailable()
        ok, output = await self.runner.command(["open", "-a", self.app_name, *self.launch_args(options or {})])
        if not ok:
            return CommandResult.failure(output)
        return CommandResult.success(output)

    def launch_args(self, options: Dict[str, Any]) -> List[str]:
        return []


__all__ = [
    "AppleScriptRunner",
    "ScriptedBackend",
    "FIELD_SEPARATOR",
    "escape",
    "is_available",
    "run_applescript",
    "run_command",
    "split_fields",
]
