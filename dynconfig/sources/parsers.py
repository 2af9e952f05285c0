"""
Readers that turn one source path into string key/value pairs.

- Properties files (default for any suffix): Java properties syntax.
- YAML (.yaml, .yml) and JSON (.json): nested structures flattened to dotted keys.
- Directories: one entry per regular, non-hidden file; key = file name, value = content
  (the layout of a mounted ConfigMap or Secret).
"""

import hashlib
import json
import string
from pathlib import Path
from typing import Any

import yaml

from dynconfig.errors import SourceParseError

_WHITESPACE = " \t\f"
_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}
YAML_SUFFIXES = (".yaml", ".yml")
JSON_SUFFIXES = (".json",)


def _logical_lines(text: str):
    """Yield logical lines: comments and blanks dropped, backslash continuations joined."""
    buf: str | None = None
    for raw in text.splitlines():
        line = raw.lstrip(_WHITESPACE)
        if buf is None and (not line or line[0] in "#!"):
            continue
        trailing = len(line) - len(line.rstrip("\\"))
        if trailing % 2 == 1:
            buf = (buf or "") + line[:-1]
            continue
        yield (buf or "") + line
        buf = None
    if buf is not None:
        yield buf


def _unescape(s: str) -> str:
    if "\\" not in s:
        return s
    out = []
    i = 0
    while i < len(s):
        c = s[i]
        if c != "\\" or i + 1 >= len(s):
            out.append(c)
            i += 1
            continue
        nxt = s[i + 1]
        if nxt == "u":
            code = s[i + 2:i + 6]
            if len(code) != 4 or any(ch not in string.hexdigits for ch in code):
                raise SourceParseError(f"Malformed \\uxxxx encoding in {s!r}")
            out.append(chr(int(code, 16)))
            i += 6
            continue
        out.append(_ESCAPES.get(nxt, nxt))
        i += 2
    return "".join(out)


def _split_key_value(line: str) -> tuple[str, str]:
    i, n = 0, len(line)
    while i < n:
        c = line[i]
        if c == "\\":
            i += 2
            continue
        if c in "=:" or c in _WHITESPACE:
            break
        i += 1
    key = line[:i]
    j = i
    while j < n and line[j] in _WHITESPACE:
        j += 1
    if j < n and line[j] in "=:":
        j += 1
    while j < n and line[j] in _WHITESPACE:
        j += 1
    return _unescape(key), _unescape(line[j:])


def parse_properties(text: str) -> dict[str, str]:
    """Parse Java properties text; a key repeated later in the same text overrides the earlier one."""
    result: dict[str, str] = {}
    for line in _logical_lines(text):
        key, value = _split_key_value(line)
        result[key] = value
    return result


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def flatten(data: Any, prefix: str = "") -> dict[str, str]:
    """Flatten nested dict/list into dotted keys: {"a": {"b": [1]}} -> {"a.b.0": "1"}."""
    if isinstance(data, dict):
        items = ((str(k), v) for k, v in data.items())
    elif isinstance(data, list):
        items = ((str(i), v) for i, v in enumerate(data))
    else:
        return {prefix: _scalar(data)}
    out: dict[str, str] = {}
    for k, v in items:
        out.update(flatten(v, f"{prefix}.{k}" if prefix else k))
    return out


def _parse_structured(path: Path, data: Any) -> dict[str, str]:
    if data is None:
        return {}
    if not isinstance(data, (dict, list)):
        raise SourceParseError(f"{path}: root must be a mapping or list, got {type(data).__name__}")
    return flatten(data)


def read_file(path: Path, encoding: str = "utf-8") -> dict[str, str]:
    """Read one config file, choosing the format by suffix (properties by default)."""
    text = path.read_text(encoding=encoding)
    suffix = path.suffix.lower()
    if suffix in YAML_SUFFIXES:
        try:
            return _parse_structured(path, yaml.safe_load(text))
        except yaml.YAMLError as e:
            raise SourceParseError(f"{path}: invalid YAML: {e}") from e
    if suffix in JSON_SUFFIXES:
        try:
            return _parse_structured(path, json.loads(text) if text.strip() else None)
        except json.JSONDecodeError as e:
            raise SourceParseError(f"{path}: invalid JSON: {e}") from e
    return parse_properties(text)


def _directory_entries(path: Path) -> list[Path]:
    # Hidden names include the ..data / ..<timestamp> bookkeeping of mounted volumes.
    return [p for p in sorted(path.iterdir()) if not p.name.startswith(".") and p.is_file()]


def read_directory(path: Path, encoding: str = "utf-8") -> dict[str, str]:
    """Read a directory: each file name is a key, its content the value."""
    return {p.name: p.read_text(encoding=encoding) for p in _directory_entries(path)}


def fingerprint(path: Path) -> str | None:
    """SHA-256 over the source content, or None if it cannot be read."""
    digest = hashlib.sha256()
    try:
        if path.is_dir():
            for entry in _directory_entries(path):
                digest.update(entry.name.encode("utf-8"))
                digest.update(b"\0")
                digest.update(entry.read_bytes())
                digest.update(b"\0")
        else:
            digest.update(path.read_bytes())
    except OSError:
        return None
    return digest.hexdigest()
