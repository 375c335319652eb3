import functools

import pytest

from salmwgs import cli
from salmwgs.__version__ import __version__
from salmwgs.scripts import report
from salmwgs.scripts.pipeline import run_pipeline

from conftest import FakeExecutor


@pytest.fixture
def argv(fastqs, tmp_path):
    return ["-1", str(fastqs[0]), "-2", str(fastqs[1]), "-o", str(tmp_path / "out"),
            "--tmp-dir", str(tmp_path / "scratch"), "--skip-checks"]


@pytest.fixture
def fake_tools(monkeypatch):
    def _install(**kwargs):
        fake = FakeExecutor(**kwargs)
        monkeypatch.setattr(cli, "run_pipeline", functools.partial(run_pipeline, executor=fake))
        return fake
    return _install


def test_parser_defaults(argv):
    args = cli.build_parser().parse_args(argv)
    assert args.threads == 1
    assert not (args.qc or args.mlst or args.amr)
    assert args.timeout is None


def test_parser_flags(argv):
    args = cli.build_parser().parse_args(argv + ["-t", "8", "--qc", "--mlst", "--amr"])
    assert args.threads == 8
    assert args.qc and args.mlst and args.amr


def test_scenario_d_missing_forward_reads(fastqs, tmp_path, fake_tools, capsys):
    fake = fake_tools()
    out = tmp_path / "out"
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["-2", str(fastqs[1]), "-o", str(out)])
    assert excinfo.value.code == 2
    assert "usage:" in capsys.readouterr().err
    assert not out.exists()
    assert fake.calls == []


def test_nonexistent_input(fastqs, tmp_path, fake_tools, capsys):
    fake = fake_tools()
    out = tmp_path / "out"
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["-1", str(tmp_path / "missing.fastq"), "-2", str(fastqs[1]), "-o", str(out)])
    assert excinfo.value.code == 2
    assert "does not exist" in capsys.readouterr().err
    assert not out.exists()
    assert fake.calls == []


def test_missing_tools_abort_before_output(argv, tmp_path, monkeypatch, capsys):
    def no_tools(config, steps):
        raise cli.ConfigError("no fastp")

    monkeypatch.setattr(cli, "check_dependencies", no_tools)
    argv = [a for a in argv if a != "--skip-checks"]
    with pytest.raises(SystemExit) as excinfo:
        cli.main(argv)
    assert excinfo.value.code == 2
    assert "no fastp" in capsys.readouterr().err
    assert not (tmp_path / "out").exists()


def test_version(capsys):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--version"])
    assert excinfo.value.code == 0
    assert __version__ in capsys.readouterr().out


def test_successful_run(argv, tmp_path, fake_tools, capsys):
    fake = fake_tools()
    assert cli.main(argv + ["--amr", "-t", "2"]) == 0
    out = tmp_path / "out"
    assert fake.tools == ["fastp", "shovill", "abricate"]
    assert (out / "S1_R1_run_report.tsv").exists()
    logs = list(out.glob("*~S1_R1_wgs.log"))
    assert len(logs) == 1
    assert "PIPELINE COMPLETED" in logs[0].read_text()
    printed = capsys.readouterr().out
    assert "AMR Profiling: True" in printed
    assert "PIPELINE COMPLETED" in printed


def test_failed_step_exit_code(argv, tmp_path, fake_tools, capsys):
    fake_tools(fail_tool="kraken2", returncode=2)
    with pytest.raises(SystemExit) as excinfo:
        cli.main(argv + ["--qc"])
    assert excinfo.value.code == 11
    assert "Step 'classify' failed (exit status 2)" in capsys.readouterr().out
    assert not (tmp_path / "out" / "shovill_res").exists()


def test_report_failure_exit_code(argv, tmp_path, fake_tools, monkeypatch, capsys):
    fake_tools()
    monkeypatch.setattr(report, "report_path", lambda config: config.out_dir / "no_dir" / "report.tsv")
    with pytest.raises(SystemExit) as excinfo:
        cli.main(argv)
    assert excinfo.value.code == 18
    assert "Step 'report' failed: Cannot write run report" in capsys.readouterr().out
