from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime, timezone
from pathlib import Path

import yaml

from sshd_buddy.authorized_keys import build_key_files, write_key_files
from sshd_buddy.checks.ssh import check_ssh
from sshd_buddy.options import ModuleConfig, from_dict
from sshd_buddy.sshd_config import SshdConfigError, SshdConfigPatcher
from sshd_buddy.utils import find_root, init_env, load_config, read_json, write_json

log = logging.getLogger("sshd_buddy.activate")

STATE_FILE = "activation.json"


def load(config_path: str) -> ModuleConfig:
    cfg_path = Path(config_path).expanduser().resolve()
    init_env(cfg_path)
    return from_dict(load_config(cfg_path), cfg_path)


def _state_path(cfg: ModuleConfig) -> Path:
    return cfg.paths.state_dir / STATE_FILE


def _read_state(cfg: ModuleConfig) -> dict:
    data = read_json(_state_path(cfg))
    return data if isinstance(data, dict) else {}


def _previous_key_files(state: dict) -> list[str]:
    prev = state.get("key_files")
    if not isinstance(prev, list):
        return []
    return [p for p in prev if isinstance(p, str)]


def build(cfg: ModuleConfig) -> list[str]:
    files = build_key_files(cfg.users)
    state = _read_state(cfg)
    written = write_key_files(files, cfg.paths.etc_dir, _previous_key_files(state))
    state["key_files"] = written
    cfg.paths.state_dir.mkdir(parents=True, exist_ok=True)
    write_json(_state_path(cfg), state)
    log.info("build_done key_files=%d etc_dir=%s", len(written), cfg.paths.etc_dir)
    return written


def activate(cfg: ModuleConfig) -> dict:
    key_files = build(cfg)
    settings = cfg.openssh.overrides()
    enable = cfg.openssh.enable
    SshdConfigPatcher(cfg.paths.sshd_config).activate(settings, enable)

    state = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "key_files": key_files,
        "sshd_config": str(cfg.paths.sshd_config),
        "overridden": enable,
        "settings": {k: v for k, v in settings} if enable else {},
    }
    cfg.paths.state_dir.mkdir(parents=True, exist_ok=True)
    write_json(_state_path(cfg), state)
    log.info("activation_done key_files=%d overridden=%s", len(key_files), enable)
    return state


def restore(cfg: ModuleConfig) -> bool:
    return SshdConfigPatcher(cfg.paths.sshd_config).restore()


def status(cfg: ModuleConfig) -> dict:
    report = check_ssh(str(cfg.paths.sshd_config))
    report["data"]["last_activation"] = _read_state(cfg) or None
    return report


def run(config_path: str, cmd: str) -> int:
    cfg = load(config_path)

    cfg.paths.log_file.parent.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        handlers=[logging.FileHandler(cfg.paths.log_file, encoding="utf-8")],
    )

    if cmd == "build":
        build(cfg)
    elif cmd == "activate":
        activate(cfg)
    elif cmd == "restore":
        restore(cfg)
    elif cmd == "status":
        print(json.dumps(status(cfg), ensure_ascii=False, indent=2, sort_keys=True))
    else:
        return 2
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="sshd_buddy.activate")
    parser.add_argument("--config", default=str(find_root() / "config" / "config.yml"))
    parser.add_argument("cmd", choices=["build", "activate", "restore", "status"])
    args = parser.parse_args(argv)
    try:
        return run(args.config, args.cmd)
    except (ValueError, OSError, yaml.YAMLError, SshdConfigError) as e:
        log.error("%s_failed %s", args.cmd, e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
