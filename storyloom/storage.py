"""JSON file storage.

Durable state is a flat key-value store of text blobs, one file per key,
under a configurable base directory. There is no database — the session
layer only needs read, full replace, delete and an existence check.

Directory layout:

    {base}/
      {key}.json      ← one serialized value per key

Writes go to a temporary file in the same directory and are moved into
place with os.replace, so a reader sees either the old value or the new
one, never a partial write.
"""

from __future__ import annotations

import os
import re
import tempfile
import unicodedata
from pathlib import Path
from typing import Protocol


class BlobStore(Protocol):
    def read(self, key: str) -> str | None: ...

    def write(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> bool: ...

    def exists(self, key: str) -> bool: ...


def slugify(key: str) -> str:
    """Convert a key to a filesystem-safe file stem.

    "Story Loom Save" → "story-loom-save"
    """
    text = unicodedata.normalize("NFKD", key)
    text = text.encode("ascii", "ignore").decode("ascii")
    text = text.lower()
    text = re.sub(r"['\"]", "", text)
    text = re.sub(r"[^a-z0-9_]+", "-", text)
    text = text.strip("-")
    return text or "untitled"


class FileStore:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._base.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base

    def path_for(self, key: str) -> Path:
        return self._base / f"{slugify(key)}.json"

    def read(self, key: str) -> str | None:
        path = self.path_for(key)
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    def write(self, key: str, value: str) -> None:
        path = self.path_for(key)
        fd, tmp_name = tempfile.mkstemp(dir=self._base, prefix=f".{path.stem}-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> bool:
        path = self.path_for(key)
        if not path.is_file():
            return False
        path.unlink()
        return True

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()
