"""Per-client critical sections for balance mutations."""

from __future__ import annotations

import threading
import zlib
from contextlib import contextmanager
from typing import Iterator

# Fixed pool; clients hashing to the same stripe share a lock.
LOCK_STRIPES = 256
_stripes = tuple(threading.Lock() for _ in range(LOCK_STRIPES))


def _lock_for(client_id: str) -> threading.Lock:
    return _stripes[zlib.crc32(str(client_id).encode("utf-8")) % LOCK_STRIPES]


@contextmanager
def client_critical_section(client_id: str) -> Iterator[None]:
    """Serialize read-check-write sequences for one client within this process.

    Cross-process serialization comes from ``SELECT ... FOR UPDATE`` on the
    account row; this lock covers SQLite and keeps workers in one process from
    queueing on the database. Memory stays bounded by ``LOCK_STRIPES``
    however many clients pass through.
    """
    lock = _lock_for(client_id)
    with lock:
        yield
