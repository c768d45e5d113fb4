from __future__ import annotations

import asyncio
import copy
import dataclasses as dc
import threading
import time
from collections.abc import Callable
from typing import Any, Final

from loguru import logger


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return 'MISSING'

    def __bool__(self) -> bool:
        return False


MISSING: Final = _Missing()


@dc.dataclass(slots=True)
class CacheEntry:
    key: str
    value: Any
    expiry: float

    def is_expired(self, now: float) -> bool:
        return now > self.expiry


@dc.dataclass(slots=True)
class SessionInfo:
    start_time: float
    duration: float
    item_count: int
    keys: list[str]


class SessionCache:
    '''
    An in-memory, per-session key/value store with per-entry expiry.

    Values are deep-copied on the way in and on the way out so callers
    never share mutable state with the cache. Expired entries are
    evicted lazily on `get`; `sweep` (or the optional background
    sweeper task) only reclaims memory earlier.

    Parameters
    ----------
    default_ttl : float
        _Seconds an entry lives when `set` is not given a ttl_
    clock : Callable[[], float]
        _Monotonic time source, injectable for tests_
    '''
    DEFAULT_TTL: Final[float] = 30 * 60

    def __init__(
        self,
        *,
        default_ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_ttl = default_ttl
        self._clock = clock
        self._lock = threading.RLock()
        self._entries: dict[str, CacheEntry] = {}
        self._started = time.time()
        self._sweeper: asyncio.Task | None = None

    @staticmethod
    def _check_key(key: str) -> None:
        if not key:
            raise ValueError('Storage key is required')

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        '''
        Stores a deep copy of `value`, replacing any existing entry
        and resetting its expiry.

        Parameters
        ----------
        key : str
        value : Any
        ttl : float | None, optional
            _Seconds until expiry_, by default `default_ttl`
        '''
        self._check_key(key)
        ttl = self.default_ttl if ttl is None else ttl
        if ttl < 0:
            raise ValueError(f'ttl must be >= 0, got {ttl}')

        entry = CacheEntry(
            key=key,
            value=copy.deepcopy(value),
            expiry=self._clock() + ttl,
        )
        with self._lock:
            self._entries[key] = entry

    def get(self, key: str, default: Any = MISSING) -> Any:
        '''
        Returns a deep copy of the stored value, or `default`
        (the `MISSING` sentinel) if absent or expired.
        '''
        self._check_key(key)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default

            if entry.is_expired(self._clock()):
                del self._entries[key]
                logger.debug(f'Session data for key "{key}" expired')
                return default

            return copy.deepcopy(entry.value)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not MISSING

    def remove(self, key: str) -> bool:
        self._check_key(key)
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries = {}

    def sweep(self) -> int:
        '''
        Evicts every expired entry.

        Returns
        -------
        int
            _The number of entries removed_
        '''
        now = self._clock()
        with self._lock:
            expired = [
                key for key, entry in self._entries.items()
                if entry.is_expired(now)
            ]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.debug(f'Swept {len(expired)} expired session entries')
        return len(expired)

    def keys(self) -> list[str]:
        now = self._clock()
        with self._lock:
            return [
                key for key, entry in self._entries.items()
                if not entry.is_expired(now)
            ]

    def __len__(self) -> int:
        return len(self.keys())

    def session_info(self) -> SessionInfo:
        keys = self.keys()
        return SessionInfo(
            start_time=self._started,
            duration=time.time() - self._started,
            item_count=len(keys),
            keys=keys,
        )

    def start_sweeper(self, interval: float = 60.0) -> asyncio.Task:
        '''
        Starts a background task on the running loop that calls `sweep`
        every `interval` seconds. Calling it again returns the same task.
        '''
        if self._sweeper is not None and not self._sweeper.done():
            return self._sweeper

        async def _run() -> None:
            while True:
                await asyncio.sleep(interval)
                self.sweep()

        self._sweeper = asyncio.get_running_loop().create_task(_run())
        return self._sweeper

    async def aclose(self) -> None:
        '''
        Stops the sweeper and drops every entry, ending the session.
        '''
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
        self.clear()
