# salmwgs/scripts/pipeline.py
from __future__ import annotations
from typing import List, Optional
import logging
import shutil
import time

from . import runner
from .config import RunConfig
from .errors import ConfigError, FilesystemError, PipelineError, StepFailure
from .runner import ensure_dir, find_launcher
from .steps import STEPS, PipelineContext, Step, StepRecord
from .utils import announce, time_print

log = logging.getLogger("salmwgs.pipeline")


def plan(config: RunConfig, steps: Optional[List[Step]] = None) -> List[Step]:
    """Enabled steps in run order."""
    steps = STEPS if steps is None else steps
    return [s for s in steps if s.enabled(config)]


def check_dependencies(config: RunConfig, steps: List[Step]) -> None:
    """Tools run inside an env need a conda launcher; the rest must be on PATH."""
    missing = []
    need_launcher = False
    for step in steps:
        if not step.tool:
            continue
        if config.env_for(step.tool):
            need_launcher = True
        elif not shutil.which(step.tool):
            missing.append(step.tool)
    if need_launcher and not find_launcher():
        missing.append("conda (or micromamba/mamba) to activate tool environments")
    if missing:
        raise ConfigError("The following required programs are not available: " + ", ".join(missing))


def _bind_call(step: Step, config: RunConfig, executor):
    step_log = logging.getLogger(f"salmwgs.{step.name}")

    def call(cmd, stdout_path=None):
        result = executor(
            cmd,
            None,
            step_log,
            env_name=config.env_for(step.tool),
            stdout_path=stdout_path,
            timeout=config.timeout_for(step.name),
        )
        if result.returncode != 0:
            tail = "\n".join(result.output.strip().splitlines()[-5:])
            raise StepFailure(step.name, result.returncode, step.exit_code, detail=tail)
        return result

    return call


def run_step(step: Step, ctx: PipelineContext, executor) -> StepRecord:
    announce(step.title, "Header")
    start = time.time()
    try:
        if step.outdir:
            ensure_dir(ctx.config.out_dir / step.outdir)
        step.action(ctx, _bind_call(step, ctx.config, executor))
    except StepFailure as e:
        ctx.records.append(StepRecord(step.name, "failed", time.time() - start, e.returncode))
        raise
    except FilesystemError as e:
        # a step that fails on the filesystem exits with that step's code
        ctx.records.append(StepRecord(step.name, "failed", time.time() - start))
        raise StepFailure(step.name, None, step.exit_code, detail=str(e)) from e
    except PipelineError:
        ctx.records.append(StepRecord(step.name, "failed", time.time() - start))
        raise

    record = StepRecord(step.name, "done", time.time() - start, 0 if step.tool else None)
    ctx.records.append(record)
    announce(f"{step.title}: done ({record.elapsed:.1f}s)", "Pass")
    return record


def run_pipeline(config: RunConfig, executor=runner.run, steps: Optional[List[Step]] = None,
                 check_tools: bool = True) -> PipelineContext:
    """Run every enabled step in order; the first failure propagates."""
    todo = plan(config, steps)
    if check_tools:
        check_dependencies(config, todo)

    ctx = PipelineContext(config=config)
    ensure_dir(config.out_dir)
    log.info("Planned steps: " + ", ".join(s.name for s in todo))
    try:
        for step in todo:
            run_step(step, ctx, executor)
    except PipelineError:
        leftovers = [p for p in (ctx.cleaned_fastq_1, ctx.cleaned_fastq_2) if p is not None and p.exists()]
        if leftovers:
            time_print("Trimmed reads left in place: " + ", ".join(str(p) for p in leftovers), "Warn")
            log.warning("Trimmed reads left in place: " + ", ".join(str(p) for p in leftovers))
        raise
    return ctx
