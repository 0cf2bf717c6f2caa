from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from sshd_buddy.utils import find_root, resolve_path

AUTHORIZED_KEYS_FILE = ".ssh/authorized_keys /etc/ssh/authorized_keys.d/%u"


class ConfigError(ValueError):
    pass


def _bool(section: dict, key: str, default: bool) -> bool:
    v = section.get(key, default)
    if not isinstance(v, bool):
        raise ConfigError(f"option_not_bool key={key} value={v!r}")
    return v


def _str_list(section: dict, key: str, where: str) -> tuple[str, ...]:
    v = section.get(key)
    if v is None:
        return ()
    if not isinstance(v, list) or not all(isinstance(x, str) for x in v):
        raise ConfigError(f"option_not_str_list key={where}.{key}")
    return tuple(v)


def _section(data: dict, key: str) -> dict:
    v = data.get(key)
    if v is None:
        return {}
    if not isinstance(v, dict):
        raise ConfigError(f"section_invalid key={key}")
    return v


def ssh_bool(b: bool) -> str:
    return "yes" if b else "no"


@dataclass(frozen=True, slots=True)
class UserKeySpec:
    username: str
    keys: tuple[str, ...] = ()
    key_files: tuple[Path, ...] = ()

    def __post_init__(self) -> None:
        name = self.username
        if not name or name in (".", "..") or "/" in name or "\0" in name:
            raise ConfigError(f"username_invalid name={name!r}")

    @property
    def has_keys(self) -> bool:
        return len(self.keys) + len(self.key_files) > 0


@dataclass(frozen=True, slots=True)
class SshdSettings:
    enable: bool = False
    password_authentication: bool = True
    challenge_response_authentication: bool = True

    def overrides(self) -> list[tuple[str, str]]:
        # Applied in this order on every activation.
        return [
            ("AuthorizedKeysFile", AUTHORIZED_KEYS_FILE),
            ("ChallengeResponseAuthentication", ssh_bool(self.challenge_response_authentication)),
            ("PasswordAuthentication", ssh_bool(self.password_authentication)),
        ]


@dataclass(frozen=True, slots=True)
class Paths:
    etc_dir: Path = Path("/etc")
    sshd_config: Path = Path("/etc/ssh/sshd_config")
    state_dir: Path = Path("./var/sshd-buddy")
    log_file: Path = Path("./var/sshd-buddy/sshd-buddy.log")


@dataclass(frozen=True, slots=True)
class ModuleConfig:
    openssh: SshdSettings = field(default_factory=SshdSettings)
    users: tuple[UserKeySpec, ...] = ()
    paths: Paths = field(default_factory=Paths)


def parse_users(data: dict, base_dir: Path) -> tuple[UserKeySpec, ...]:
    out: list[UserKeySpec] = []
    for name, u in _section(data, "users").items():
        if u is None:
            u = {}
        if not isinstance(u, dict):
            raise ConfigError(f"user_invalid name={name}")
        ak = _section(_section(u, "openssh"), "authorizedKeys")
        where = f"users.{name}.openssh.authorizedKeys"
        keys = _str_list(ak, "keys", where)
        key_files = tuple(resolve_path(base_dir, f) for f in _str_list(ak, "keyFiles", where))
        out.append(UserKeySpec(username=str(name), keys=keys, key_files=key_files))
    return tuple(out)


def parse_openssh(data: dict) -> SshdSettings:
    cfg = _section(_section(data, "services"), "openssh")
    return SshdSettings(
        enable=_bool(cfg, "enable", False),
        password_authentication=_bool(cfg, "passwordAuthentication", True),
        challenge_response_authentication=_bool(cfg, "challengeResponseAuthentication", True),
    )


def parse_paths(data: dict, root: Path) -> Paths:
    paths = _section(data, "paths")
    defaults = Paths()
    etc_dir = os.getenv("SSHD_BUDDY_ETC_DIR") or str(paths.get("etc_dir") or defaults.etc_dir)
    sshd_config = os.getenv("SSHD_BUDDY_SSHD_CONFIG") or str(paths.get("sshd_config") or defaults.sshd_config)
    state_dir = str(paths.get("state_dir") or defaults.state_dir)
    log_file = str(paths.get("log_file") or defaults.log_file)
    return Paths(
        etc_dir=resolve_path(root, etc_dir),
        sshd_config=resolve_path(root, sshd_config),
        state_dir=resolve_path(root, state_dir),
        log_file=resolve_path(root, log_file),
    )


def from_dict(data: dict, config_path: Path) -> ModuleConfig:
    config_path = config_path.expanduser().resolve()
    return ModuleConfig(
        openssh=parse_openssh(data),
        users=parse_users(data, config_path.parent),
        paths=parse_paths(data, find_root(config_path)),
    )
