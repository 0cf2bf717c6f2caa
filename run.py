import argparse
import logging
import os
import sys
from pathlib import Path

import yaml

from sshd_buddy.activate import run as run_activate
from sshd_buddy.sshd_config import SshdConfigError
from sshd_buddy.utils import find_root, init_env


def _log_paths(root: Path) -> tuple[Path, Path]:
    logs_dir = root / "var" / "sshd-buddy"
    logs_dir.mkdir(parents=True, exist_ok=True)
    return (
        logs_dir / "run.log",
        logs_dir / "activate.log",
    )


class _NamePrefixFilter(logging.Filter):
    def __init__(self, prefixes: tuple[str, ...]):
        super().__init__()
        self.prefixes = prefixes

    def filter(self, record: logging.LogRecord) -> bool:
        return record.name.startswith(self.prefixes)


def _configure_logging(root: Path, run_log: Path, activate_log: Path, foreground: bool) -> None:
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    for h in list(root_logger.handlers):
        root_logger.removeHandler(h)

    h_run = logging.FileHandler(run_log, encoding="utf-8")
    h_run.setFormatter(fmt)
    h_run.addFilter(_NamePrefixFilter(("sshd_buddy.run",)))
    root_logger.addHandler(h_run)

    h_activate = logging.FileHandler(activate_log, encoding="utf-8")
    h_activate.setFormatter(fmt)
    h_activate.addFilter(_NamePrefixFilter(("sshd_buddy.activate",)))
    root_logger.addHandler(h_activate)

    if foreground:
        h_err = logging.StreamHandler(sys.stderr)
        h_err.setFormatter(fmt)
        h_err.addFilter(_NamePrefixFilter(("sshd_buddy",)))
        root_logger.addHandler(h_err)

    logging.getLogger("sshd_buddy.run").info("logging_ready root=%s", root)


parser = argparse.ArgumentParser(prog="run")
parser.add_argument("--config", default=str(find_root() / "config" / "config.yml"))
parser.add_argument("--foreground", action="store_true")
parser.add_argument("cmd", nargs="?", default="activate", choices=["build", "activate", "restore", "status"])
args = parser.parse_args()

cfg_path = Path(args.config).expanduser().resolve()
root = find_root(cfg_path)
init_env(cfg_path)

run_log, activate_log = _log_paths(root)
_configure_logging(root, run_log, activate_log, args.foreground or os.isatty(2))

log = logging.getLogger("sshd_buddy.run")
log.info("run_start root=%s config=%s cmd=%s", root, cfg_path, args.cmd)
try:
    rc = run_activate(str(cfg_path), args.cmd)
except (ValueError, OSError, yaml.YAMLError, SshdConfigError) as e:
    log.error("%s_error %s", args.cmd, e)
    rc = 1
log.info("run_done cmd=%s rc=%d", args.cmd, rc)
raise SystemExit(rc)
