"""
Document Writer

Persists the inner content of a materialized document as JSON.
Writes go to a temp file in the target directory, then replace the
target, so readers see either the old file or the new one.
"""

import json
import os
import stat
import tempfile
import threading
from pathlib import Path
from typing import Any

from zkmirror.common.config import DEFAULT_ROOT_KEY
from zkmirror.common.exceptions import WriteError
from zkmirror.common.logging_setup import get_service_logger, log_document_written

logger = get_service_logger("mirror.writer")

_umask_lock = threading.Lock()


def _current_umask() -> int:
    # os.umask can only be read by setting it
    with _umask_lock:
        mask = os.umask(0o022)
        os.umask(mask)
    return mask


def render_document(document: dict[str, Any], root_key: str = DEFAULT_ROOT_KEY) -> bytes:
    """Serialize the mapping under root_key; sorted keys keep output stable"""
    content = document.get(root_key)
    if not isinstance(content, dict):
        raise WriteError("content is not a JSON object")
    text = json.dumps(content, indent=2, sort_keys=True, ensure_ascii=False)
    return (text + "\n").encode("utf-8")


class DocumentWriter:
    """Writes documents to a fixed target path"""

    def __init__(self, target: str | Path, root_key: str = DEFAULT_ROOT_KEY):
        self.target = Path(target)
        self.root_key = root_key

    def _file_mode(self) -> int:
        """Keep the current target's mode, else what a plain open() would give"""
        try:
            return stat.S_IMODE(os.stat(self.target).st_mode)
        except FileNotFoundError:
            return 0o666 & ~_current_umask()

    def write(self, document: dict[str, Any]) -> int:
        """
        Replace the target with the serialized document.

        Returns:
            Number of bytes written

        Raises:
            WriteError: content is not a mapping, or the file could not be written
        """
        payload = render_document(document, self.root_key)
        temp_path: str | None = None

        try:
            self.target.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                prefix=f".{self.target.name}.",
                suffix=".tmp",
                dir=self.target.parent,
            )
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(temp_path, self._file_mode())
            os.replace(temp_path, self.target)
            temp_path = None
        except OSError as e:
            raise WriteError(f"cannot write {self.target}: {e}", path=str(self.target)) from e
        finally:
            if temp_path is not None:
                try:
                    os.unlink(temp_path)
                except FileNotFoundError:
                    pass

        log_document_written(logger, str(self.target), len(payload))
        return len(payload)
