"""Pytest fixtures and a fake tool executor"""

import argparse
from pathlib import Path

import pytest

from salmwgs.scripts import config as config_mod
from salmwgs.scripts.config import DEFAULT_CONFIG, RunConfig, build_run_config
from salmwgs.scripts.runner import ToolResult

CONTIGS = """>contig00001 len=12
ATGCGCGCATAT
>contig00002 len=8
GGGGAAAA
>contig00003 len=4
ATAT
"""


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Keep the user's ~/.salmwgs and SALMWGS_* variables out of the tests."""
    monkeypatch.setattr(config_mod, "CONFIG_PATH", str(tmp_path / "no_such_config.json"))
    monkeypatch.delenv("SGE_TASK_ID", raising=False)
    for tool in config_mod.TOOLS:
        monkeypatch.delenv(f"SALMWGS_{tool.upper()}_ENV", raising=False)
    for var in ("SALMWGS_TMP_DIR", "SALMWGS_KRAKEN2_DB", "SALMWGS_MENTALIST_DB"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def fastqs(tmp_path):
    reads = tmp_path / "reads"
    reads.mkdir()
    r1 = reads / "S1_R1.fastq.gz"
    r2 = reads / "S1_R2.fastq.gz"
    r1.write_text("@r1\nACGT\n+\nIIII\n")
    r2.write_text("@r1\nTGCA\n+\nIIII\n")
    return r1, r2


def make_args(**kwargs):
    values = dict(fastq_1=None, fastq_2=None, outdir=None, threads=1, qc=False, mlst=False,
                  amr=False, tmp_dir=None, task_id=None, config=None, timeout=None, skip_checks=True)
    values.update(kwargs)
    return argparse.Namespace(**values)


@pytest.fixture
def make_config(fastqs, tmp_path):
    def _make(**kwargs) -> RunConfig:
        args = make_args(fastq_1=str(fastqs[0]), fastq_2=str(fastqs[1]),
                         outdir=str(tmp_path / "out"), tmp_dir=str(tmp_path / "scratch"))
        settings = kwargs.pop("settings", DEFAULT_CONFIG)
        environ = kwargs.pop("environ", {})
        for key, val in kwargs.items():
            setattr(args, key, val)
        return build_run_config(args, settings, environ=environ)
    return _make


class FakeExecutor:
    """Stands in for runner.run: records calls and fakes each tool's main output."""

    def __init__(self, fail_tool=None, returncode=1):
        self.fail_tool = fail_tool
        self.returncode = returncode
        self.calls = []

    @property
    def tools(self):
        return [c["tool"] for c in self.calls]

    def __call__(self, cmd, cwd, log, env_name=None, stdout_path=None, timeout=None):
        cmd = [str(x) for x in cmd]
        tool = cmd[0]
        self.calls.append({"tool": tool, "cmd": cmd, "env": env_name,
                           "stdout_path": stdout_path, "timeout": timeout})
        if tool == self.fail_tool:
            return ToolResult(cmd=cmd, returncode=self.returncode, output=f"{tool}: boom", elapsed=0.0)

        if tool == "fastp":
            for flag in ("-o", "-O"):
                Path(cmd[cmd.index(flag) + 1]).write_text("@r\nACGT\n+\nIIII\n")
        elif tool == "shovill":
            Path(cmd[cmd.index("--outdir") + 1], "contigs.fa").write_text(CONTIGS)
        if stdout_path:
            Path(stdout_path).write_text("#FILE\tSEQUENCE\tGENE\n")
        return ToolResult(cmd=cmd, returncode=0, output="", elapsed=0.0)
