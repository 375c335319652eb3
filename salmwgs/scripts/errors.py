# salmwgs/scripts/errors.py
from __future__ import annotations
from typing import Optional


class PipelineError(Exception):
    """Base error; `exit_code` is what the CLI exits with."""
    exit_code = 1


class ConfigError(PipelineError):
    """Missing or invalid argument / settings value. Raised before any step runs."""
    exit_code = 2


class FilesystemError(PipelineError):
    exit_code = 3


class StepFailure(PipelineError):
    """An external tool returned non-zero or timed out, or a step hit a filesystem error."""

    def __init__(self, step: str, returncode: Optional[int], exit_code: int = 1, detail: str = ""):
        self.step = step
        self.returncode = returncode
        self.exit_code = exit_code
        self.detail = detail
        if returncode is None:
            super().__init__(f"Step '{step}' failed: {detail}")
        else:
            super().__init__(f"Step '{step}' failed (exit status {returncode})")
