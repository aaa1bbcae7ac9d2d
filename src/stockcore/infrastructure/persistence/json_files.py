"""File helpers shared by the JSON-backed repositories.

Writes go to a temporary file that is atomically renamed over the target,
so lock-free readers always see a complete document.  Read-modify-write
sequences hold ``exclusive(path)``: a process-local lock plus an
``fcntl`` advisory lock on a sidecar ``.lock`` file, which serializes
writers across threads and across processes sharing the data directory.
"""

from __future__ import annotations

import fcntl
import json
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

_thread_locks: dict[Path, threading.Lock] = {}
_registry_lock = threading.Lock()


@contextmanager
def exclusive(path: Path) -> Iterator[None]:
    lock_path = path.with_name(path.name + ".lock")
    with _registry_lock:
        thread_lock = _thread_locks.setdefault(lock_path.resolve(), threading.Lock())

    with thread_lock:
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        with open(lock_path, "a+", encoding="utf-8") as handle:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


def ensure_file(path: Path, empty: str = "[]") -> None:
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        write_text_atomic(path, empty)


def load_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def persist_json(path: Path, data: Any) -> None:
    write_text_atomic(path, json.dumps(data, indent=2) + "\n")


def write_text_atomic(path: Path, text: str) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
