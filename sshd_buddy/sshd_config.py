from __future__ import annotations

import fcntl
import logging
import os
import re
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Sequence

MARKER = "# Overridden by nix-darwin: "

_LINE_RE = re.compile(r"[^\n]*\n|[^\n]+\Z")

log = logging.getLogger("sshd_buddy.activate")


class SshdConfigError(RuntimeError):
    pass


class DuplicateSettingError(SshdConfigError):
    pass


@dataclass(frozen=True, slots=True)
class ConfigLine:
    key: str | None
    value: str
    comment: str
    original: str | None
    eol: str

    @property
    def overridden(self) -> bool:
        return self.original is not None


def split_lines(text: str) -> list[str]:
    return _LINE_RE.findall(text)


def parse_line(raw: str) -> ConfigLine:
    if raw.endswith("\r\n"):
        body, eol = raw[:-2], "\r\n"
    elif raw.endswith("\n"):
        body, eol = raw[:-1], "\n"
    else:
        body, eol = raw, ""

    head, sep, original = body.rpartition(MARKER)
    code, _, comment = head.partition("#")

    key: str | None = None
    value = ""
    # Only lines that start with the keyword in column 0 count.
    if code and not code[0].isspace():
        parts = code.split(None, 1)
        key = parts[0]
        value = parts[1].strip() if len(parts) > 1 else ""
    return ConfigLine(
        key=key,
        value=value,
        comment=comment.strip(),
        original=original if sep else None,
        eol=eol,
    )


def parse_config(text: str) -> list[ConfigLine]:
    return [parse_line(raw) for raw in split_lines(text)]


def restore_text(text: str) -> str:
    out: list[str] = []
    for raw in split_lines(text):
        line = parse_line(raw)
        if line.overridden:
            out.append(line.original + line.eol)
        else:
            out.append(raw)
    return "".join(out)


def override_line(key: str, value: str, raw: str) -> str:
    line = parse_line(raw)
    body = raw[: len(raw) - len(line.eol)]
    return f"{key} {value} {MARKER}{body}{line.eol}"


def override_text(text: str, settings: Sequence[tuple[str, str]]) -> str:
    lines = split_lines(text)
    for key, value in settings:
        hits = []
        for i, raw in enumerate(lines):
            line = parse_line(raw)
            if line.key == key and not line.overridden:
                hits.append(i)
        if not hits:
            log.warning("setting_not_found key=%s", key)
            continue
        if len(hits) > 1:
            raise DuplicateSettingError(
                f"setting_duplicated key={key} lines={','.join(str(i + 1) for i in hits)}"
            )
        i = hits[0]
        lines[i] = override_line(key, value, lines[i])
        log.info("setting_overridden key=%s value=%s line=%d", key, value, i + 1)
    return "".join(lines)


def overridden_settings(text: str) -> dict[str, dict[str, str]]:
    out: dict[str, dict[str, str]] = {}
    for line in parse_config(text):
        if line.overridden and line.key:
            out[line.key] = {"value": line.value, "original": line.original or ""}
    return out


class SshdConfigPatcher:
    def __init__(self, path: Path | str):
        self.path = Path(path)

    @contextmanager
    def _locked(self) -> Iterator:
        try:
            f = self.path.open("r+", encoding="utf-8", errors="surrogateescape", newline="")
        except OSError as e:
            raise SshdConfigError(f"sshd_config_open_failed path={self.path} error={e}") from e
        with f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                yield f
            finally:
                f.flush()
                os.fsync(f.fileno())
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)

    def _rewrite(self, transform: Callable[[str], str]) -> bool:
        with self._locked() as f:
            text = f.read()
            new = transform(text)
            if new == text:
                return False
            try:
                f.seek(0)
                f.write(new)
                f.truncate()
            except OSError as e:
                raise SshdConfigError(f"sshd_config_write_failed path={self.path} error={e}") from e
        return True

    def restore(self) -> bool:
        changed = self._rewrite(restore_text)
        log.info("sshd_config_restored path=%s changed=%s", self.path, changed)
        return changed

    def activate(self, settings: Sequence[tuple[str, str]], enable: bool) -> bool:
        def transform(text: str) -> str:
            text = restore_text(text)
            if enable:
                log.info("Applying changes to %s", self.path)
                text = override_text(text, settings)
            return text

        changed = self._rewrite(transform)
        log.info("sshd_config_activated path=%s enable=%s changed=%s", self.path, enable, changed)
        return changed
