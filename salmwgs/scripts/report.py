# salmwgs/scripts/report.py
from __future__ import annotations
from pathlib import Path
from typing import Dict, List
import csv
import logging

from Bio import SeqIO

from .errors import FilesystemError

log = logging.getLogger("salmwgs.report")


def n50(lengths: List[int]) -> int:
    """Smallest contig length L such that contigs >= L cover half the assembly."""
    total = sum(lengths)
    if total == 0:
        return 0
    running = 0
    for length in sorted(lengths, reverse=True):
        running += length
        if running * 2 >= total:
            return length
    return 0


def assembly_stats(contigs: Path) -> Dict[str, str]:
    """
    Contig count, total length, largest contig, N50 and GC% of a FASTA assembly.
    Returns {} when the file is missing.
    """
    if not contigs or not Path(contigs).exists():
        return {}
    lengths: List[int] = []
    gc_count = 0
    for record in SeqIO.parse(str(contigs), "fasta"):
        seq = str(record.seq).upper()
        lengths.append(len(seq))
        gc_count += seq.count("G") + seq.count("C")

    total = sum(lengths)
    return {
        "contigs": str(len(lengths)),
        "total_length": str(total),
        "largest_contig": str(max(lengths) if lengths else 0),
        "n50": str(n50(lengths)),
        "gc_percent": f"{100.0 * gc_count / total:.2f}" if total else "NA",
    }


def report_path(config) -> Path:
    return config.out_dir / f"{config.sample_name}_run_report.tsv"


def write_run_report(ctx) -> Path:
    cfg = ctx.config
    out = report_path(cfg)
    try:
        stats = assembly_stats(ctx.contigs)
    except OSError as e:
        raise FilesystemError(f"Cannot read assembly {ctx.contigs}: {e}") from e
    if not stats:
        log.warning(f"No assembly found at {ctx.contigs}; contig statistics omitted")

    try:
        with out.open("w", newline="") as fh:
            w = csv.writer(fh, delimiter="\t")
            w.writerow(["# Run parameters"])
            w.writerow(["sample", cfg.sample_name])
            w.writerow(["fastq_1", cfg.fastq_1])
            w.writerow(["fastq_2", cfg.fastq_2])
            w.writerow(["threads", cfg.threads])
            w.writerow(["qc", cfg.qc])
            w.writerow(["mlst", cfg.mlst])
            w.writerow(["amr", cfg.amr])
            w.writerow([])
            w.writerow(["# Assembly"])
            for key, val in stats.items():
                w.writerow([key, val])
            w.writerow([])
            w.writerow(["# Steps"])
            w.writerow(["step", "status", "elapsed_seconds", "exit_status"])
            for rec in ctx.records:
                w.writerow([rec.name, rec.status, f"{rec.elapsed:.1f}",
                            "" if rec.returncode is None else rec.returncode])
    except OSError as e:
        raise FilesystemError(f"Cannot write run report {out}: {e}") from e
    log.info(f"Run report written to {out}")
    return out
