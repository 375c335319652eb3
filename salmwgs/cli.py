#!/usr/bin/env python3

import sys
import time
import argparse
import logging

from salmwgs.__version__ import __version__
from salmwgs.scripts.config import load_config, build_run_config
from salmwgs.scripts.errors import ConfigError, PipelineError, StepFailure
from salmwgs.scripts.log_setup import setup_logging, close_logging, run_log_path
from salmwgs.scripts.pipeline import plan, check_dependencies, run_pipeline
from salmwgs.scripts.report import report_path
from salmwgs.scripts.runner import ensure_dir
from salmwgs.scripts.utils import time_print, simple_print, announce, pipeheader


class CustomHelpFormatter(argparse.ArgumentDefaultsHelpFormatter):
    def __init__(self, *args, **kwargs):
        kwargs['width'] = 100  # Set the width of the help message
        super().__init__(*args, **kwargs)

    def _get_help_string(self, action):
        if action.default is not None and action.default != argparse.SUPPRESS:
            return super()._get_help_string(action)
        return action.help


def build_parser():
    parser = argparse.ArgumentParser(
        prog="salmwgs",
        description="Trim, classify, assemble, check, type and AMR-profile paired-end Salmonella reads.",
        formatter_class=CustomHelpFormatter,
        add_help=False  # Disable default help to add it manually
    )

    required_args = parser.add_argument_group('Required arguments')
    optional_args = parser.add_argument_group('Optional arguments')

    required_args.add_argument("-1", dest="fastq_1", metavar="FASTQ_1",
                               help="Input forward fastq", required=True)
    required_args.add_argument("-2", dest="fastq_2", metavar="FASTQ_2",
                               help="Input reverse fastq", required=True)
    required_args.add_argument("-o", dest="outdir", metavar="OUT_DIR",
                               help="Output directory", required=True)

    optional_args.add_argument("--qc", action="store_true",
                               help="Run quality check (kraken2, CheckM, Quast)")
    optional_args.add_argument("--mlst", action="store_true",
                               help="Run MLST using MentaliST")
    optional_args.add_argument("--amr", action="store_true",
                               help="Run AMR profiling using abricate")
    optional_args.add_argument("-t", dest="threads", type=int, default=1,
                               help="Number of threads")
    optional_args.add_argument("--tmp-dir", dest="tmp_dir",
                               help="Directory for trimmed reads and CheckM scratch files. "
                                    "Default: settings file, then <system tmp>/salmwgs_<user>")
    optional_args.add_argument("--task-id", dest="task_id",
                               help="Task identifier scoping the CheckM report directory. "
                                    "Default: $SGE_TASK_ID, then 'local'")
    optional_args.add_argument("--config", dest="config",
                               help="JSON settings file (tool envs, databases, timeouts). "
                                    "Default: ~/.salmwgs/config.json if present")
    optional_args.add_argument("--timeout", type=float,
                               help="Time limit in seconds for every step without its own limit in the settings")
    optional_args.add_argument("--skip-checks", dest="skip_checks", action="store_true",
                               help="Do not check that the external tools are available before starting")
    optional_args.add_argument("-v", "--version", action="version",
                               version=f"salmwgs {__version__}",
                               help="Show the current version and exit.")
    optional_args.add_argument("-h", "--help",
                               action="help",
                               help="Show this help message and exit.")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_config(args.config)
        config = build_run_config(args, settings)
        steps = plan(config)
        if not args.skip_checks:
            check_dependencies(config, steps)
    except ConfigError as e:
        parser.print_usage(sys.stderr)
        sys.stderr.write(f"salmwgs: error: {e}\n")
        sys.exit(e.exit_code)

    header, run_info, step_table = pipeheader(config, steps)
    for line in header + run_info + step_table:
        simple_print(line)

    try:
        ensure_dir(config.out_dir)
    except PipelineError as e:
        time_print(str(e), "Fail")
        sys.exit(e.exit_code)

    log_file = run_log_path(config.out_dir, config.sample_name)
    handler = setup_logging(log_file)
    for line in header + run_info + step_table:
        logging.info(line)

    start_time = time.time()
    announce("PIPELINE STARTED", "Header")
    try:
        run_pipeline(config, steps=steps, check_tools=False)
    except StepFailure as e:
        announce(f"{e}; see {log_file}", "Fail")
        for line in (e.detail.splitlines() if e.returncode is not None else []):
            time_print(f"  {line}", "Fail")
        close_logging(handler)
        sys.exit(e.exit_code)
    except PipelineError as e:
        announce(str(e), "Fail")
        close_logging(handler)
        sys.exit(e.exit_code)

    hours, remainder = divmod(time.time() - start_time, 3600)
    minutes, seconds = divmod(remainder, 60)
    announce(f"PIPELINE COMPLETED in {int(hours)} hours, {int(minutes)} minutes, {seconds:.2f} seconds", "Header")
    simple_print(f"Run report: {report_path(config)}")
    close_logging(handler)
    return 0


if __name__ == "__main__":
    sys.exit(main())
