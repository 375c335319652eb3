from __future__ import annotations
import os
import re
import copy
import json
import getpass
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from .errors import ConfigError

CONFIG_DIR = os.path.expanduser("~/.salmwgs")
CONFIG_PATH = os.path.join(CONFIG_DIR, "config.json")

TOOLS = ("fastp", "kraken2", "mentalist", "shovill", "checkm", "quast", "abricate")

DEFAULT_CONFIG = {
    # conda env name, env prefix path, or null to run the tool from PATH
    "envs": {tool: tool for tool in TOOLS},
    "kraken2_db": "/data/ref_databases/kraken2/minikraken2_v2_8GB",
    "mentalist_db": (
        "/opt/galaxy/tool-data/mentalist_databases/salmonella_enterobase_cgmlst_k31_2018-07-26/"
        "salmonella_enterobase_cgmlst_k31_2018-07-26.jld"
    ),
    "genome_size": "4.5M",
    "checkm_rank": "species",
    "checkm_taxon": "Salmonella enterica",
    "abricate_db": "card",
    "tmp_dir": None,
    # seconds per step name, null for no limit
    "timeouts": {},
}

_FASTQ_EXT = re.compile(r"\.(fastq|fq)$", re.IGNORECASE)


def default_tmp_dir() -> str:
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = "user"
    return os.path.join(tempfile.gettempdir(), f"salmwgs_{user}")


def _merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, val in override.items():
        if isinstance(val, dict) and isinstance(merged.get(key), dict):
            merged[key].update(val)
        else:
            merged[key] = val
    return merged


def load_config(path: Optional[str] = None, environ=None) -> dict:
    """Defaults <- JSON settings file <- SALMWGS_* environment variables."""
    environ = os.environ if environ is None else environ
    config = copy.deepcopy(DEFAULT_CONFIG)

    cfg_path = path or CONFIG_PATH
    if os.path.exists(cfg_path):
        try:
            with open(cfg_path, "r") as f:
                user_cfg = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigError(f"Cannot read settings file {cfg_path}: {e}") from e
        if not isinstance(user_cfg, dict):
            raise ConfigError(f"Settings file {cfg_path} must hold a JSON object")
        config = _merge(config, user_cfg)
    elif path:
        raise ConfigError(f"Settings file {path} does not exist")

    for tool in TOOLS:
        var = f"SALMWGS_{tool.upper()}_ENV"
        if var in environ:
            config["envs"][tool] = environ[var] or None
    for key in ("tmp_dir", "kraken2_db", "mentalist_db"):
        var = f"SALMWGS_{key.upper()}"
        if environ.get(var):
            config[key] = environ[var]
    return config


def save_config(config, path: Optional[str] = None):
    path = path or CONFIG_PATH
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w") as f:
        json.dump(config, f, indent=2)


@dataclass(frozen=True)
class RunConfig:
    fastq_1: Path
    fastq_2: Path
    out_dir: Path
    threads: int = 1
    qc: bool = False
    mlst: bool = False
    amr: bool = False
    tmp_dir: Path = field(default_factory=lambda: Path(default_tmp_dir()))
    task_id: str = "local"
    envs: Dict[str, Optional[str]] = field(default_factory=dict)
    kraken2_db: str = DEFAULT_CONFIG["kraken2_db"]
    mentalist_db: str = DEFAULT_CONFIG["mentalist_db"]
    genome_size: str = DEFAULT_CONFIG["genome_size"]
    checkm_rank: str = DEFAULT_CONFIG["checkm_rank"]
    checkm_taxon: str = DEFAULT_CONFIG["checkm_taxon"]
    abricate_db: str = DEFAULT_CONFIG["abricate_db"]
    timeouts: Dict[str, Optional[float]] = field(default_factory=dict)
    default_timeout: Optional[float] = None

    @property
    def sample_name(self) -> str:
        name = self.fastq_1.name
        if name.lower().endswith(".gz"):
            name = name[:-3]
        return _FASTQ_EXT.sub("", name)

    def env_for(self, tool: Optional[str]) -> Optional[str]:
        if not tool:
            return None
        return self.envs.get(tool)

    def timeout_for(self, step: str) -> Optional[float]:
        return self.timeouts.get(step, self.default_timeout)


def build_run_config(args, settings: dict, environ=None) -> RunConfig:
    """Validate parsed CLI args against the settings and freeze them into a RunConfig.

    Touches nothing on disk; every problem surfaces as ConfigError.
    """
    environ = os.environ if environ is None else environ

    missing = [flag for flag, val in (("-1", args.fastq_1), ("-2", args.fastq_2), ("-o", args.outdir)) if not val]
    if missing:
        raise ConfigError(f"Missing required argument(s): {', '.join(missing)}")

    fastq_1 = Path(args.fastq_1).expanduser().resolve()
    fastq_2 = Path(args.fastq_2).expanduser().resolve()
    for flag, fq in (("-1", fastq_1), ("-2", fastq_2)):
        if not fq.is_file():
            raise ConfigError(f"Input fastq for {flag} does not exist: {fq}")
    if fastq_1 == fastq_2:
        raise ConfigError("-1 and -2 point to the same file")
    if fastq_1.stem == fastq_2.stem:
        # both would be trimmed to the same temporary file
        raise ConfigError(f"-1 and -2 share the file name stem {fastq_1.stem}")

    if args.threads < 1:
        raise ConfigError(f"Number of threads must be at least 1 (got {args.threads})")
    if args.timeout is not None and args.timeout <= 0:
        raise ConfigError(f"Timeout must be positive (got {args.timeout})")

    timeouts = {}
    for step, val in (settings.get("timeouts") or {}).items():
        if val is not None:
            try:
                val = float(val)
            except (TypeError, ValueError):
                raise ConfigError(f"Invalid timeout for step '{step}': {val!r}")
        timeouts[step] = val

    tmp_dir = args.tmp_dir or settings.get("tmp_dir") or default_tmp_dir()
    task_id = args.task_id or environ.get("SGE_TASK_ID") or "local"

    return RunConfig(
        fastq_1=fastq_1,
        fastq_2=fastq_2,
        out_dir=Path(args.outdir).expanduser().resolve(),
        threads=args.threads,
        qc=args.qc,
        mlst=args.mlst,
        amr=args.amr,
        tmp_dir=Path(tmp_dir).expanduser().resolve(),
        task_id=str(task_id),
        envs=dict(settings.get("envs") or {}),
        kraken2_db=settings["kraken2_db"],
        mentalist_db=settings["mentalist_db"],
        genome_size=str(settings["genome_size"]),
        checkm_rank=settings["checkm_rank"],
        checkm_taxon=settings["checkm_taxon"],
        abricate_db=settings["abricate_db"],
        timeouts=timeouts,
        default_timeout=args.timeout,
    )
