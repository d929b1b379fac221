"""
Snapshot Store

Holds the most recently loaded document and answers typed lookups.
Each load builds a new read-only mapping and swaps it in whole, so
readers never see a half-updated document and never wait on the store.

Conversions follow the lookup semantics the mirrored configs were
written against: missing or unconvertible values give the type's zero
value rather than an error.
"""

import json
import re
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from zkmirror.common.exceptions import NotInitializedError, ReadError
from zkmirror.common.logging_setup import get_service_logger

logger = get_service_logger("mirror.snapshot")

_KEY_SEPARATORS = re.compile(r"[./]")

_TRUE_STRINGS = frozenset(("1", "t", "T", "TRUE", "true", "True"))
_FALSE_STRINGS = frozenset(("0", "f", "F", "FALSE", "false", "False"))

# Go-style duration units, in microseconds (timedelta resolution)
_DURATION_UNITS = {
    "ns": 0.001,
    "us": 1.0,
    "µs": 1.0,  # U+00B5
    "μs": 1.0,  # U+03BC
    "ms": 1000.0,
    "s": 1_000_000.0,
    "m": 60_000_000.0,
    "h": 3_600_000_000.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_ZERO_DECIMAL = re.compile(r"^([+-]?\d+)\.0*$")

_SIZE_MULTIPLIERS = {"k": 1 << 10, "m": 1 << 20, "g": 1 << 30}


_MISSING = object()


def _child(node: Mapping[str, Any], name: str) -> Any:
    """Exact name first, then a case-insensitive match; _MISSING if neither"""
    if name in node:
        return node[name]
    lowered = name.lower()
    for child_name, child in node.items():
        if child_name.lower() == lowered:
            return child
    return _MISSING


def _freeze(value: Any) -> Any:
    if isinstance(value, dict):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    return value


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        if value in _TRUE_STRINGS:
            return True
        if value in _FALSE_STRINGS:
            return False
    return False


def to_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if not isinstance(value, str):
        return 0

    text = value.strip()
    match = _ZERO_DECIMAL.match(text)
    if match:
        text = match.group(1)
    try:
        return int(text, 0)
    except ValueError:
        pass
    try:
        return int(text, 10)
    except ValueError:
        return 0


def to_float(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return 0.0
    return 0.0


def to_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return ""


def to_string_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return value.split()
    if isinstance(value, (list, tuple)):
        return [to_string(v) for v in value]
    return []


def to_string_map(value: Any) -> dict[str, Any]:
    if isinstance(value, Mapping):
        return {str(k): _thaw(v) for k, v in value.items()}
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return {}
        if isinstance(parsed, dict):
            return parsed
    return {}


def to_string_map_string(value: Any) -> dict[str, str]:
    return {k: to_string(v) if not isinstance(v, (dict, list)) else json.dumps(v)
            for k, v in to_string_map(value).items()}


def parse_duration(text: str) -> timedelta:
    """
    Parse a Go-style duration ("1h30m", "250ms", "-1.5s").

    Raises:
        ValueError: text is not a valid duration
    """
    text = text.strip()
    if not text:
        raise ValueError("empty duration")

    sign = 1
    if text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if text == "0":
        return timedelta(0)

    total_us = 0.0
    pos = 0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if not match:
            raise ValueError(f"invalid duration: {text!r}")
        total_us += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    return timedelta(microseconds=sign * total_us)


def to_duration(value: Any) -> timedelta:
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        return timedelta(0)
    if isinstance(value, (int, float)):
        # bare numbers are nanoseconds
        return timedelta(microseconds=value / 1000)
    if isinstance(value, str):
        text = value.strip()
        if not any(unit in text for unit in "nsuµμmh"):
            text += "ns"
        try:
            return parse_duration(text)
        except ValueError:
            return timedelta(0)
    return timedelta(0)


def parse_size_in_bytes(text: str) -> int:
    """"10", "10b", "1kb", "2 MB", "1gb" -> bytes; negatives clamp to 0"""
    text = text.strip()
    multiplier = 1
    last = len(text) - 1
    if last > 0 and text[last] in "bB":
        if last > 1 and text[last - 1].lower() in _SIZE_MULTIPLIERS:
            multiplier = _SIZE_MULTIPLIERS[text[last - 1].lower()]
            text = text[:last - 1].strip()
        else:
            text = text[:last].strip()

    size = to_int(text)
    if size < 0:
        size = 0
    return size * multiplier


class SnapshotStore:
    """
    Process-wide view of the latest mirrored document.

    Create one per mirrored subtree and hand it to whatever needs
    configuration values. Until the first successful load every getter
    raises NotInitializedError.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._document: Mapping[str, Any] | None = None
        self._loaded_at: datetime | None = None
        self._source: Path | None = None

    @property
    def is_loaded(self) -> bool:
        return self._document is not None

    @property
    def loaded_at(self) -> datetime | None:
        return self._loaded_at

    @property
    def source(self) -> Path | None:
        return self._source

    def load(self, path: str | Path) -> None:
        """
        Read a JSON document from disk and swap it in.

        Raises:
            ReadError: file missing, unreadable, or not a JSON object;
                the previous snapshot is kept
        """
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ReadError(f"cannot load snapshot from {path}: {e}", path=str(path)) from e

        if not isinstance(data, dict):
            raise ReadError(f"snapshot {path} is not a JSON object", path=str(path))

        self.replace(data, source=path)
        logger.debug(f"Snapshot reloaded from {path}", extra={"path": str(path)})

    def replace(self, document: dict[str, Any], source: Path | None = None) -> None:
        """Swap in an already-built document"""
        frozen = _freeze(document)
        with self._lock:
            self._document = frozen
            self._loaded_at = datetime.now(timezone.utc)
            self._source = source

    def as_dict(self) -> dict[str, Any]:
        """Mutable deep copy of the current document"""
        return _thaw(self._current())

    def _current(self, key: str | None = None) -> Mapping[str, Any]:
        document = self._document
        if document is None:
            raise NotInitializedError(key)
        return document

    def _resolve(self, key: str) -> Any:
        """
        Walk the document along a dotted or slashed key.

        At each level the longest run of remaining segments joined with
        "." is tried first, so node names that contain dots resolve.
        """
        node: Any = self._current(key)
        segments = _KEY_SEPARATORS.split(key.strip("./"))
        start = 0
        while start < len(segments):
            if not isinstance(node, Mapping):
                return None
            for end in range(len(segments), start, -1):
                child = _child(node, ".".join(segments[start:end]))
                if child is not _MISSING:
                    node = child
                    start = end
                    break
            else:
                return None
        return node

    def is_set(self, key: str) -> bool:
        return self._resolve(key) is not None

    def get(self, key: str) -> Any:
        """Raw value: a str for leaves, a dict for subtrees, None if absent"""
        return _thaw(self._resolve(key))

    def get_string(self, key: str) -> str:
        return to_string(self._resolve(key))

    def get_bool(self, key: str) -> bool:
        return to_bool(self._resolve(key))

    def get_int(self, key: str) -> int:
        return to_int(self._resolve(key))

    def get_int64(self, key: str) -> int:
        return to_int(self._resolve(key))

    def get_float(self, key: str) -> float:
        return to_float(self._resolve(key))

    def get_string_list(self, key: str) -> list[str]:
        return to_string_list(self._resolve(key))

    def get_string_map(self, key: str) -> dict[str, Any]:
        return to_string_map(self._resolve(key))

    def get_string_map_string(self, key: str) -> dict[str, str]:
        return to_string_map_string(self._resolve(key))

    def get_duration(self, key: str) -> timedelta:
        return to_duration(self._resolve(key))

    def get_size_in_bytes(self, key: str) -> int:
        value = self._resolve(key)
        if isinstance(value, str):
            return parse_size_in_bytes(value)
        return max(to_int(value), 0)
