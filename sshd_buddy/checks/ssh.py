from __future__ import annotations

from pathlib import Path

from sshd_buddy.sshd_config import overridden_settings, parse_config


def _parse_sshd_config(text: str) -> dict[str, str | list[str]]:
    out: dict[str, str | list[str]] = {}
    for line in parse_config(text):
        if not line.key or not line.value:
            continue
        k = line.key
        v = line.value
        prev = out.get(k)
        if prev is None:
            out[k] = v
        elif isinstance(prev, list):
            prev.append(v)
        else:
            out[k] = [prev, v]
    return out


def check_ssh(config_path: str = "/etc/ssh/sshd_config") -> dict:
    path = Path(config_path)
    if not path.exists():
        return {
            "status": "warn",
            "details": "sshd_config_not_found",
            "data": {"path": str(path)},
        }
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        return {
            "status": "warn",
            "details": "sshd_config_read_failed",
            "data": {"path": str(path), "error": str(e)},
        }
    parsed = _parse_sshd_config(text)
    keys = [
        "AuthorizedKeysFile",
        "PasswordAuthentication",
        "ChallengeResponseAuthentication",
        "KbdInteractiveAuthentication",
        "PubkeyAuthentication",
        "PermitRootLogin",
        "UsePAM",
    ]
    selected = {k: parsed.get(k) for k in keys if k in parsed}
    overridden = overridden_settings(text)
    details = f"overridden={len(overridden)}" if overridden else "restored"
    return {
        "status": "ok",
        "details": details,
        "data": {"path": str(path), "config": selected, "overridden": overridden},
    }
