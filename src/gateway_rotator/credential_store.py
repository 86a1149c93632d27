# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
In-memory credential pool with round-robin selection and cooldown failover.

Selection is lazy: cooldowns are checked at selection time instead of being
expired by timers. Worst case per selection is O(pool size), idle cost is zero.

All mutating operations are short and synchronous. Under a single asyncio
event loop they run to completion without yielding; the lock only matters
when the store is shared with worker threads. Async callers go through
aselect_credential(), which reads stale key files off the loop before taking
the lock. select_credential() reloads inline and is meant for callers that
are not on the event loop.
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .config.settings import GatewayConfig
from .errors import mask_credential
from .key_sources import LoadedKeys, TieredKeySource

lib_logger = logging.getLogger("gateway_rotator")


def _iso(ts: Optional[float]) -> Optional[str]:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


@dataclass
class CredentialRecord:
    """One rotation slot."""

    secret: str
    fail_count: int = 0
    cooldown_until: Optional[float] = None
    last_used_at: Optional[float] = None

    def is_usable(self, now: float) -> bool:
        return self.cooldown_until is None or self.cooldown_until <= now


class CredentialStore:
    """
    Ordered credential records plus a rotation cursor.

    Order comes from the key file and defines rotation order. Records are only
    replaced through a full reload, which carries status over for secrets
    present in both the old and the new key set.
    """

    def __init__(
        self,
        source: TieredKeySource,
        cooldown_seconds: float,
        reload_interval: float,
        clock: Callable[[], float] = time.time,
        autoload: bool = True,
    ):
        self._source = source
        self.cooldown_seconds = cooldown_seconds
        self.reload_interval = reload_interval
        self._clock = clock

        self._records: List[CredentialRecord] = []
        self._cursor = 0
        self._loaded_at = 0.0
        self._loaded_from: Optional[Path] = None
        self._lock = threading.RLock()

        if autoload:
            self.reload()

    @classmethod
    def from_config(cls, config: GatewayConfig, **kwargs) -> "CredentialStore":
        return cls(
            source=TieredKeySource.from_paths(config.key_file_chain),
            cooldown_seconds=config.cooldown_seconds,
            reload_interval=config.reload_interval,
            **kwargs,
        )

    def __len__(self) -> int:
        return len(self._records)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def loaded_from(self) -> Optional[Path]:
        return self._loaded_from

    # =========================================================================
    # Loading
    # =========================================================================

    def is_stale(self) -> bool:
        return self._clock() - self._loaded_at > self.reload_interval

    def _apply_loaded(self, loaded: Optional[LoadedKeys]) -> None:
        """Swap in a freshly read key list, merging status by exact secret."""
        with self._lock:
            if loaded is None:
                lib_logger.warning("Key files are missing or empty; keeping current pool.")
                self._loaded_at = self._clock()
                return

            existing: Dict[str, CredentialRecord] = {}
            for record in self._records:
                existing.setdefault(record.secret, record)

            new_records = []
            for secret in loaded.keys:
                previous = existing.get(secret)
                if previous is not None:
                    new_records.append(replace(previous))
                else:
                    new_records.append(CredentialRecord(secret=secret))

            self._records = new_records
            if self._cursor >= len(self._records):
                self._cursor = 0
            self._loaded_at = self._clock()
            self._loaded_from = loaded.source

            lib_logger.info(
                f"Loaded {len(self._records)} key(s) from {loaded.source.name}"
            )

    def reload(self) -> None:
        """Re-read the highest-priority non-empty key file and merge status."""
        self._apply_loaded(self._source.load())

    async def areload(self) -> None:
        """Like reload(), but the file read runs off the event loop."""
        loaded = await asyncio.to_thread(self._source.load)
        self._apply_loaded(loaded)

    # =========================================================================
    # Selection
    # =========================================================================

    def select_credential(self) -> Optional[str]:
        """
        Pick the next usable credential in rotation order.

        Returns None only when the pool is empty. When every credential is
        cooling down, the first one is returned anyway and the cursor moves to
        index 1, so an exhausted key is attempted rather than failing outright.
        """
        with self._lock:
            if self.is_stale():
                self.reload()

            count = len(self._records)
            if count == 0:
                return None

            now = self._clock()
            for offset in range(count):
                index = (self._cursor + offset) % count
                record = self._records[index]
                if not record.is_usable(now):
                    continue
                self._cursor = (index + 1) % count
                record.last_used_at = now
                return record.secret

            # TODO: make forced selection of a cooling-down key configurable
            # (fail fast with 503 instead) once the policy is confirmed.
            lib_logger.warning("All keys are cooling down; forcing the first key.")
            self._cursor = 1 if count > 1 else 0
            record = self._records[0]
            record.last_used_at = now
            return record.secret

    async def aselect_credential(self) -> Optional[str]:
        """select_credential() for the event loop: a stale pool is re-read off the loop first."""
        if self.is_stale():
            await self.areload()
        return self.select_credential()

    def mark_failure(self, secret: str) -> None:
        """Put every slot holding `secret` into cooldown. Unknown secrets are ignored."""
        with self._lock:
            now = self._clock()
            matched = False
            for record in self._records:
                if record.secret != secret:
                    continue
                record.fail_count += 1
                record.cooldown_until = now + self.cooldown_seconds
                matched = True

            if matched:
                lib_logger.warning(
                    f"Key {mask_credential(secret)} put on cooldown for "
                    f"{self.cooldown_seconds / 3600:g}h."
                )

    def mark_success(self, secret: str) -> None:
        with self._lock:
            for record in self._records:
                if record.secret == secret:
                    record.fail_count = 0
                    record.cooldown_until = None

    def reset_all(self) -> None:
        """Clear failures and cooldowns for every record and rewind the cursor."""
        with self._lock:
            for record in self._records:
                record.fail_count = 0
                record.cooldown_until = None
            self._cursor = 0
        lib_logger.info("Reset status of all keys.")

    # =========================================================================
    # Introspection
    # =========================================================================

    def get_record(self, secret: str) -> Optional[CredentialRecord]:
        with self._lock:
            for record in self._records:
                if record.secret == secret:
                    return record
            return None

    def get_stats(self) -> Dict[str, int]:
        with self._lock:
            now = self._clock()
            available = sum(1 for r in self._records if r.is_usable(now))
            return {
                "total": len(self._records),
                "available": available,
                "in_cooldown": len(self._records) - available,
            }

    def get_detailed_status(self) -> Dict[str, Any]:
        with self._lock:
            now = self._clock()
            stats = self.get_stats()
            stats["loaded_from"] = self._loaded_from.name if self._loaded_from else None
            stats["loaded_at"] = _iso(self._loaded_at) if self._loaded_at else None
            stats["keys"] = [
                {
                    "key_short": mask_credential(r.secret),
                    "fail_count": r.fail_count,
                    "in_cooldown": not r.is_usable(now),
                    "cooldown_until": _iso(r.cooldown_until),
                    "last_used": _iso(r.last_used_at),
                }
                for r in self._records
            ]
            return stats
