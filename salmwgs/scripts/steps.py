# salmwgs/scripts/steps.py
from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional
import logging
import os
import shutil

from .config import RunConfig
from .errors import FilesystemError
from .report import write_run_report
from .runner import ensure_dir, remove_file

log = logging.getLogger("salmwgs.steps")

KRAKEN2_DIR = "kraken2_res"
MENTALIST_DIR = "mentalist_res"
SHOVILL_DIR = "shovill_res"
CHECKM_DIR = "checkm_res"
QUAST_DIR = "quast_res"
ABRICATE_DIR = "abricate_res"


@dataclass
class StepRecord:
    name: str
    status: str
    elapsed: float = 0.0
    returncode: Optional[int] = None


@dataclass
class PipelineContext:
    """Paths produced by earlier steps plus the outcome of every step run so far."""
    config: RunConfig
    cleaned_fastq_1: Optional[Path] = None
    cleaned_fastq_2: Optional[Path] = None
    records: List[StepRecord] = field(default_factory=list)

    @property
    def contigs(self) -> Path:
        return self.config.out_dir / SHOVILL_DIR / "contigs.fa"

    def trimmed_reads(self) -> List[Path]:
        if self.cleaned_fastq_1 is None or self.cleaned_fastq_2 is None:
            raise FilesystemError("Trimmed reads are not available (trim has not run or cleanup already ran)")
        return [self.cleaned_fastq_1, self.cleaned_fastq_2]


# call(cmd, stdout_path=None) -> ToolResult, bound by the sequencer to the
# step's env and timeout; raises StepFailure on a non-zero exit.
Call = Callable[..., object]


@dataclass(frozen=True)
class Step:
    name: str
    title: str
    tool: Optional[str]
    exit_code: int
    action: Callable[[PipelineContext, Call], None]
    enabled: Callable[[RunConfig], bool] = lambda cfg: True
    outdir: Optional[str] = None


def trimmed_path(tmp_dir: Path, fastq: Path) -> Path:
    # basename minus its last extension, e.g. S1_R1.fastq.gz -> S1_R1.fastq.tmp
    return tmp_dir / f"{fastq.stem}.tmp"


def fastp_trim(ctx: PipelineContext, call: Call) -> None:
    cfg = ctx.config
    ensure_dir(cfg.tmp_dir)
    cleaned_1 = trimmed_path(cfg.tmp_dir, cfg.fastq_1)
    cleaned_2 = trimmed_path(cfg.tmp_dir, cfg.fastq_2)
    call([
        "fastp",
        "-i", cfg.fastq_1, "-I", cfg.fastq_2,
        "-o", cleaned_1, "-O", cleaned_2,
        "-w", cfg.threads,
        "-j", os.devnull, "-h", os.devnull,
    ])
    ctx.cleaned_fastq_1 = cleaned_1
    ctx.cleaned_fastq_2 = cleaned_2


def kraken2_classify(ctx: PipelineContext, call: Call) -> None:
    cfg = ctx.config
    call([
        "kraken2", cfg.fastq_1, cfg.fastq_2,
        "--paired",
        "--threads", cfg.threads,
        "--db", cfg.kraken2_db,
        "--use-names",
        "--output", os.devnull,
        "--report", cfg.out_dir / KRAKEN2_DIR / "kraken2_report",
    ])


def mentalist_call(ctx: PipelineContext, call: Call) -> None:
    cfg = ctx.config
    read_1, read_2 = ctx.trimmed_reads()
    call([
        "mentalist", "call",
        "-o", cfg.out_dir / MENTALIST_DIR / "allele_profile",
        "-s", cfg.sample_name,
        "--db", cfg.mentalist_db,
        read_1, read_2,
    ])


def shovill_assemble(ctx: PipelineContext, call: Call) -> None:
    cfg = ctx.config
    read_1, read_2 = ctx.trimmed_reads()
    call([
        "shovill",
        "--outdir", cfg.out_dir / SHOVILL_DIR,
        "--R1", read_1, "--R2", read_2,
        "--gsize", cfg.genome_size,
        "--cpus", cfg.threads,
        "--force",
    ])


def remove_trimmed(ctx: PipelineContext, call: Call) -> None:
    for fq in ctx.trimmed_reads():
        remove_file(fq)
        log.debug(f"Removed {fq}")
    ctx.cleaned_fastq_1 = None
    ctx.cleaned_fastq_2 = None


def checkm_bin_dir(cfg: RunConfig) -> Path:
    return cfg.tmp_dir / f"{cfg.sample_name}_checkm_bins"


def stage_bin(contigs: Path, bin_dir: Path, name: str) -> Path:
    """Fresh directory holding only a copy of the assembly, named <name>.fa."""
    try:
        if bin_dir.exists():
            shutil.rmtree(bin_dir)
        bin_dir.mkdir(parents=True)
        return Path(shutil.copyfile(contigs, bin_dir / f"{name}.fa"))
    except OSError as e:
        raise FilesystemError(f"Cannot stage {contigs} for CheckM in {bin_dir}: {e}") from e


def checkm_taxonomy(ctx: PipelineContext, call: Call) -> None:
    cfg = ctx.config
    report_dir = cfg.out_dir / f"{cfg.task_id}_run"
    ensure_dir(report_dir)
    ensure_dir(cfg.tmp_dir)
    # taxonomy_wf takes every file ending in -x in the bin dir; shovill_res also has contigs.gfa
    bin_dir = checkm_bin_dir(cfg)
    stage_bin(ctx.contigs, bin_dir, cfg.sample_name)
    try:
        call([
            "checkm", "taxonomy_wf", cfg.checkm_rank, cfg.checkm_taxon,
            bin_dir,
            cfg.out_dir / CHECKM_DIR,
            "-t", cfg.threads,
            "-x", "fa",
            "--tab_table",
            "-f", report_dir / "checkm_report.tsv",
            "--tmpdir", cfg.tmp_dir,
        ])
    finally:
        shutil.rmtree(bin_dir, ignore_errors=True)


def quast_stats(ctx: PipelineContext, call: Call) -> None:
    cfg = ctx.config
    call([
        "quast", "--fast",
        "-t", cfg.threads,
        "-o", cfg.out_dir / QUAST_DIR,
        ctx.contigs,
    ])


def abricate_amr(ctx: PipelineContext, call: Call) -> None:
    cfg = ctx.config
    call(
        ["abricate", "--db", cfg.abricate_db, "--threads", cfg.threads, ctx.contigs],
        stdout_path=cfg.out_dir / ABRICATE_DIR / "amr_profile.tab",
    )


def write_report(ctx: PipelineContext, call: Call) -> None:
    write_run_report(ctx)


STEPS = [
    Step("trim", "Read trimming using fastp", "fastp", 10, fastp_trim),
    Step("classify", "Read classification using kraken2", "kraken2", 11, kraken2_classify,
         enabled=lambda cfg: cfg.qc, outdir=KRAKEN2_DIR),
    Step("mlst", "MLST typing using MentaliST", "mentalist", 12, mentalist_call,
         enabled=lambda cfg: cfg.mlst, outdir=MENTALIST_DIR),
    Step("assemble", "Genome assembly using shovill", "shovill", 13, shovill_assemble,
         outdir=SHOVILL_DIR),
    Step("cleanup", "Removing trimmed reads", None, 14, remove_trimmed),
    Step("checkm", "Checking assembly using CheckM", "checkm", 15, checkm_taxonomy,
         enabled=lambda cfg: cfg.qc, outdir=CHECKM_DIR),
    Step("quast", "Calculating assembly statistics using Quast", "quast", 16, quast_stats,
         enabled=lambda cfg: cfg.qc, outdir=QUAST_DIR),
    Step("amr", "AMR profiling using abricate", "abricate", 17, abricate_amr,
         enabled=lambda cfg: cfg.amr, outdir=ABRICATE_DIR),
    Step("report", "Writing run report", None, 18, write_report),
]
