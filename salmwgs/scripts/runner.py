# salmwgs/scripts/runner.py
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
import logging
import os
import shutil
import signal
import subprocess
import time

from .errors import FilesystemError

log = logging.getLogger("salmwgs.runner")

# Exit status reported for a tool killed on timeout (same as coreutils `timeout`).
TIMEOUT_RC = 124
LAUNCH_FAILED_RC = 127

LAUNCHERS = ("conda", "micromamba", "mamba")


@dataclass(frozen=True)
class ToolResult:
    cmd: List[str]
    returncode: int
    output: str
    elapsed: float

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def find_launcher() -> Optional[str]:
    for tool in LAUNCHERS:
        if shutil.which(tool):
            return tool
    return None


def compose_tool_cmd(cmd: List[str], env_name: Optional[str]) -> List[str]:
    """Wrap command to run inside a conda/mamba/micromamba env if requested.

    An env holding a path separator is an env prefix (``-p``), anything else
    is an env name (``-n``).
    """
    if not env_name:
        return cmd
    launcher = find_launcher()
    if not launcher:
        log.warning(f"No conda/micromamba/mamba found; running {cmd[0]} from PATH instead of env '{env_name}'")
        return cmd
    flag = "-p" if os.sep in env_name else "-n"
    if launcher == "conda":
        return ["conda", "run", "--no-capture-output", flag, env_name] + cmd
    return [launcher, "run", flag, env_name] + cmd


def _kill_group(p: subprocess.Popen) -> None:
    # the tool runs in its own session, so its pid is also its process group id
    try:
        os.killpg(p.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass


def run(cmd, cwd, log, env_name=None, stdout_path=None, timeout=None) -> ToolResult:
    """Run a tool and return its ToolResult; never raises on tool failure.

    With `stdout_path` the tool's stdout is written to that file and only
    stderr is captured; otherwise stdout and stderr are captured together.
    On timeout the tool's whole process group is killed, so wrappers such as
    `conda run` or shovill do not leave their children running.
    """
    cmd_exec = compose_tool_cmd(list(cmd), env_name)
    # normalize everything to str for safe logging/subprocess
    if any(isinstance(x, bool) for x in cmd_exec):
        log.error(f"BUG: command contains boolean(s): {cmd_exec!r}")
    cmd_exec = [str(x) for x in cmd_exec]
    log.debug(f"RUN: {' '.join(cmd_exec)}" + (f" > {stdout_path}" if stdout_path else ""))

    out_fh = None
    if stdout_path:
        try:
            out_fh = open(stdout_path, "w")
        except OSError as e:
            raise FilesystemError(f"Cannot write tool output to {stdout_path}: {e}") from e

    start = time.time()
    try:
        try:
            p = subprocess.Popen(
                cmd_exec,
                cwd=str(cwd) if cwd else None,
                stdout=out_fh if out_fh else subprocess.PIPE,
                stderr=subprocess.PIPE if out_fh else subprocess.STDOUT,
                text=True,
                start_new_session=True,
            )
        except OSError as e:
            rc, out = LAUNCH_FAILED_RC, f"[runner] Failed to execute: {e}"
        else:
            try:
                stdout, stderr = p.communicate(timeout=timeout)
                rc, out = p.returncode, (stderr if out_fh else stdout) or ""
            except subprocess.TimeoutExpired:
                _kill_group(p)
                p.communicate()
                rc, out = TIMEOUT_RC, f"[runner] Timed out after {timeout} seconds"
            except BaseException:
                _kill_group(p)
                p.wait()
                raise
    finally:
        if out_fh:
            out_fh.close()
    elapsed = time.time() - start

    if out.strip():
        log.debug(out.rstrip())
    log.debug(f"EXIT: {rc} ({elapsed:.1f}s)")
    return ToolResult(cmd=cmd_exec, returncode=rc, output=out, elapsed=elapsed)


def ensure_dir(p: Path) -> None:
    try:
        p.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FilesystemError(f"Cannot create directory {p}: {e}") from e


def remove_file(p: Path) -> None:
    try:
        p.unlink()
    except OSError as e:
        raise FilesystemError(f"Cannot remove {p}: {e}") from e
