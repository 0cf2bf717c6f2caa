from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from sshd_buddy.options import UserKeySpec
from sshd_buddy.utils import write_text_atomic

KEYS_DIR = "ssh/authorized_keys.d"

log = logging.getLogger("sshd_buddy.activate")


class KeyFileMissingError(FileNotFoundError):
    pass


def key_file_path(username: str) -> str:
    return f"{KEYS_DIR}/{username}"


def users_with_keys(users: Iterable[UserKeySpec]) -> list[UserKeySpec]:
    return [u for u in users if u.has_keys]


def render_key_file(user: UserKeySpec) -> str:
    parts: list[str] = [k + "\n" for k in user.keys]
    for f in user.key_files:
        try:
            text = Path(f).read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise KeyFileMissingError(f"key_file_missing user={user.username} path={f}") from e
        parts.append(text + "\n")
    return "".join(parts)


def build_key_files(users: Iterable[UserKeySpec]) -> dict[str, str]:
    out: dict[str, str] = {}
    for u in users_with_keys(users):
        out[key_file_path(u.username)] = render_key_file(u)
    return out


def write_key_files(files: dict[str, str], etc_dir: Path, previous: Iterable[str] = ()) -> list[str]:
    keys_dir = etc_dir / KEYS_DIR
    keys_dir.mkdir(parents=True, exist_ok=True)
    for rel, content in files.items():
        target = etc_dir / rel
        write_text_atomic(target, content)
        log.info("key_file_written path=%s bytes=%d", target, len(content.encode("utf-8")))

    # Only files we generated before are pruned.
    for rel in previous:
        name = rel[len(KEYS_DIR) + 1:]
        if rel in files or not rel.startswith(KEYS_DIR + "/") or "/" in name or name in ("", ".", ".."):
            continue
        stale = etc_dir / rel
        if stale.is_file():
            stale.unlink()
            log.info("key_file_removed path=%s", stale)
    return sorted(files)
