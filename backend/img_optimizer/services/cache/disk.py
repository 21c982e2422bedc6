"""
Filesystem cache store.

Layout:
cache_dir/
├── 3f/
│   ├── 3fa9...e1.entry
│   └── .3fa9...e1.k2j4.tmp   (in-progress write)
└── ...

Each ``.entry`` file is a single JSON header line followed by the payload.
Writes go to a temp file in the same directory and are committed with
``os.replace``, so readers only ever see complete entries.
"""

import asyncio
import json
import logging
import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from img_optimizer.services.cache.base import CacheStore, Clock
from img_optimizer.services.pipeline.errors import CacheStorageError
from img_optimizer.services.pipeline.models import CacheEntry

logger = logging.getLogger(__name__)

ENTRY_SUFFIX = ".entry"
TEMP_SUFFIX = ".tmp"
MAX_HEADER_BYTES = 4096
STALE_TEMP_SECONDS = 3600


class CorruptEntry(Exception):
    """Entry file exists but cannot be parsed."""


@dataclass
class _EntryFile:
    path: Path
    created_at: float
    ttl: float
    size: int
    inode: int


def _read_header(handle) -> dict[str, Any]:
    line = handle.readline(MAX_HEADER_BYTES)
    if not line.endswith(b"\n"):
        raise CorruptEntry("missing header terminator")
    try:
        header = json.loads(line)
        float(header["created_at"])
        float(header["ttl"])
        int(header["size"])
        str(header["content_type"])
    except (ValueError, KeyError, TypeError) as e:
        raise CorruptEntry(str(e)) from e
    return header


class DiskCacheStore(CacheStore):
    """
    Local filesystem cache with atomic commits.

    Blocking file I/O runs in worker threads so lookups, writes and sweeps
    never stall the event loop. No lock is held across keys.
    """

    def __init__(
        self,
        cache_dir: str | Path = "./cache",
        ttl_seconds: float = 86400,
        max_size_bytes: int | None = None,
        clock: Clock = time.time,
    ):
        super().__init__(ttl_seconds, clock)
        self.cache_dir = Path(cache_dir)
        self._max_size = max_size_bytes
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Disk cache directory: {self.cache_dir}")

    def _path(self, key: str) -> Path:
        return self.cache_dir / key[:2] / f"{key}{ENTRY_SUFFIX}"

    # ------------------------------------------------------------------
    # Synchronous helpers (run via asyncio.to_thread)
    # ------------------------------------------------------------------

    def _unlink_if_same(self, path: Path, inode: int) -> None:
        """Remove ``path`` unless a newer write replaced it."""
        try:
            if os.stat(path).st_ino == inode:
                path.unlink()
        except FileNotFoundError:
            pass

    def _read(self, key: str) -> CacheEntry | None:
        path = self._path(key)
        try:
            with open(path, "rb") as f:
                inode = os.fstat(f.fileno()).st_ino
                try:
                    header = _read_header(f)
                    data = f.read()
                    if len(data) != int(header["size"]):
                        raise CorruptEntry(
                            f"size mismatch ({len(data)} != {header['size']})"
                        )
                except CorruptEntry as e:
                    logger.warning(f"Corrupt cache entry {key}: {e}")
                    self._unlink_if_same(path, inode)
                    return None
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheStorageError(str(e)) from e

        entry = CacheEntry(
            key=key,
            data=data,
            content_type=header["content_type"],
            created_at=float(header["created_at"]),
            ttl=float(header["ttl"]),
        )
        if entry.is_expired(self._clock()):
            logger.debug(f"Disk cache expired: {key}")
            self._unlink_if_same(path, inode)
            return None
        return entry

    def _write(self, entry: CacheEntry) -> None:
        path = self._path(entry.key)
        header = json.dumps(
            {
                "content_type": entry.content_type,
                "created_at": entry.created_at,
                "ttl": entry.ttl,
                "size": len(entry.data),
            }
        ).encode("utf-8")

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=path.parent,
                prefix=f".{entry.key}.",
                suffix=TEMP_SUFFIX,
            )
        except OSError as e:
            raise CacheStorageError(str(e)) from e

        try:
            with os.fdopen(fd, "wb") as f:
                f.write(header + b"\n")
                f.write(entry.data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except OSError as e:
            try:
                os.remove(tmp_name)
            except OSError:
                pass
            raise CacheStorageError(str(e)) from e

    def _scan(self) -> tuple[list[_EntryFile], list[Path]]:
        """List entry files (with parsed headers) and temp files."""
        entries: list[_EntryFile] = []
        temps: list[Path] = []
        for shard in self.cache_dir.iterdir():
            if not shard.is_dir():
                continue
            for path in shard.iterdir():
                if path.name.endswith(TEMP_SUFFIX):
                    temps.append(path)
                    continue
                if not path.name.endswith(ENTRY_SUFFIX):
                    continue
                try:
                    with open(path, "rb") as f:
                        inode = os.fstat(f.fileno()).st_ino
                        header = _read_header(f)
                except FileNotFoundError:
                    continue
                except CorruptEntry:
                    entries.append(_EntryFile(path, 0.0, 0.0, 0, -1))
                    continue
                entries.append(
                    _EntryFile(
                        path=path,
                        created_at=float(header["created_at"]),
                        ttl=float(header["ttl"]),
                        size=int(header["size"]),
                        inode=inode,
                    )
                )
        return entries, temps

    def _sweep(self) -> int:
        now = self._clock()
        removed = 0
        entries, temps = self._scan()

        for tmp in temps:
            try:
                if time.time() - tmp.stat().st_mtime > STALE_TEMP_SECONDS:
                    tmp.unlink()
                    logger.debug(f"Removed orphaned temp file: {tmp.name}")
            except FileNotFoundError:
                pass

        live: list[_EntryFile] = []
        for item in entries:
            if item.inode == -1 or now > item.created_at + item.ttl:
                try:
                    if item.inode == -1:
                        item.path.unlink()
                    else:
                        self._unlink_if_same(item.path, item.inode)
                    removed += 1
                except FileNotFoundError:
                    pass
            else:
                live.append(item)

        if self._max_size is not None:
            total = sum(item.size for item in live)
            for item in sorted(live, key=lambda e: e.created_at):
                if total <= self._max_size:
                    break
                self._unlink_if_same(item.path, item.inode)
                total -= item.size
                removed += 1
                logger.info(f"Size-limit evicted: {item.path.name}")

        return removed

    def _clear(self) -> int:
        entries, temps = self._scan()
        for path in [e.path for e in entries] + temps:
            try:
                path.unlink()
            except FileNotFoundError:
                pass
        return len(entries)

    def _stats(self) -> dict[str, Any]:
        entries, _ = self._scan()
        total = sum(e.size for e in entries)
        return {
            "backend": "disk",
            "cache_dir": str(self.cache_dir),
            "entries": len(entries),
            "total_size_bytes": total,
            "total_size_mb": round(total / (1024 * 1024), 2),
            "max_size_mb": (
                self._max_size // (1024 * 1024) if self._max_size is not None else None
            ),
            "ttl_seconds": self._ttl,
        }

    # ------------------------------------------------------------------
    # CacheStore interface
    # ------------------------------------------------------------------

    async def lookup(self, key: str) -> CacheEntry | None:
        return await asyncio.to_thread(self._read, key)

    async def put(self, key: str, data: bytes, content_type: str) -> CacheEntry:
        entry = self._new_entry(key, data, content_type)
        await asyncio.to_thread(self._write, entry)
        logger.debug(f"Disk cached: {key} ({len(data)} bytes)")
        return entry

    async def evict_expired(self) -> int:
        try:
            removed = await asyncio.to_thread(self._sweep)
        except OSError as e:
            raise CacheStorageError(str(e)) from e
        if removed:
            logger.info(f"Evicted {removed} disk cache entries")
        return removed

    async def delete(self, key: str) -> bool:
        try:
            await asyncio.to_thread(self._path(key).unlink)
            return True
        except FileNotFoundError:
            return False

    async def clear(self) -> int:
        count = await asyncio.to_thread(self._clear)
        logger.info(f"Cleared {count} disk cache entries")
        return count

    async def get_stats(self) -> dict[str, Any]:
        return await asyncio.to_thread(self._stats)

    async def health_check(self) -> bool:
        return await asyncio.to_thread(os.access, self.cache_dir, os.W_OK)
