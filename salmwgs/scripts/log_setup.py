# log_setup.py
import sys
import logging
from datetime import datetime
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def run_log_path(out_dir: Path, sample: str) -> Path:
    log_time = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    return Path(out_dir) / f"{log_time}~{sample}_wgs.log"


def setup_logging(logfile, level=logging.DEBUG, console: bool = False):
    """
    Attach a file handler for the run log to the root logger (and optionally a
    stdout handler). Console output normally goes through utils.time_print, so
    `console` is off by default. Returns the file handler so callers can close it.
    """
    fmt = logging.Formatter(LOG_FORMAT)

    file_h = logging.FileHandler(logfile, mode="a", encoding="utf-8")
    file_h.setFormatter(fmt)
    file_h.setLevel(level)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    root.addHandler(file_h)

    if console:
        sh = logging.StreamHandler(sys.stdout)
        sh.setFormatter(fmt)
        sh.setLevel(logging.INFO)
        root.addHandler(sh)

    return file_h


def close_logging(handler):
    root = logging.getLogger()
    root.removeHandler(handler)
    handler.close()
