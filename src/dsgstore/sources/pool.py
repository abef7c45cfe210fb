# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 dsgstore contributors

"""
Pool of open external dataset handles.

Opening a netCDF file is expensive relative to reading one sample from it,
so released handles are kept open for reuse. The pool bounds the number of
open handles, the number kept idle, and how long an idle handle survives.
It is owned by a single store and closed with it.
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from ..core.config import PoolConfig
from ..core.constants import PoolDefaults
from ..core.exceptions import DSGStoreError
from .netcdf import StationDataset, open_station_dataset

logger = logging.getLogger(__name__)

Opener = Callable[[str], StationDataset]


class DatasetPool:
    """Thread-safe pool of :class:`StationDataset` handles keyed by locator.

    Parameters
    ----------
    opener : callable, optional
        ``opener(locator) -> StationDataset``. Defaults to
        :func:`open_station_dataset`.
    max_open_handles : int
        Handles open at once, leased or idle. ``acquire`` blocks at the limit
        until a handle is released.
    max_idle_handles : int
        Released handles kept for reuse. Zero closes every handle on release.
    idle_timeout : float
        Seconds an idle handle is kept before being closed.
    """

    def __init__(
        self,
        opener: Optional[Opener] = None,
        max_open_handles: int = PoolDefaults.MAX_OPEN_HANDLES,
        max_idle_handles: int = PoolDefaults.MAX_IDLE_HANDLES,
        idle_timeout: float = PoolDefaults.IDLE_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_open_handles < 1:
            raise ValueError("max_open_handles must be at least 1")
        self._opener = opener or open_station_dataset
        self.max_open_handles = max_open_handles
        self.max_idle_handles = max_idle_handles
        self.idle_timeout = idle_timeout
        self._clock = clock
        self._condition = threading.Condition()
        self._idle: Dict[str, List[Tuple[StationDataset, float]]] = {}
        self._open_count = 0
        self._closed = False

    @classmethod
    def from_config(cls, config: PoolConfig, opener: Optional[Opener] = None) -> 'DatasetPool':
        return cls(
            opener=opener,
            max_open_handles=config.max_open_handles,
            max_idle_handles=config.max_idle_handles,
            idle_timeout=config.idle_timeout,
        )

    # ------------------------------------------------------------------
    # Counters
    # ------------------------------------------------------------------

    @property
    def open_handles(self) -> int:
        with self._condition:
            return self._open_count

    @property
    def idle_handles(self) -> int:
        with self._condition:
            return sum(len(entries) for entries in self._idle.values())

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Leasing
    # ------------------------------------------------------------------

    def acquire(self, locator: str) -> StationDataset:
        """Lease a handle for ``locator``, reusing an idle one if possible.

        Raises:
            ExternalSourceUnavailable: if a new handle cannot be opened
            DSGStoreError: if the pool is closed
        """
        while True:
            handle = None
            reserved = False
            with self._condition:
                if self._closed:
                    raise DSGStoreError("Dataset pool is closed")
                stale = self._pop_expired()
                entries = self._idle.get(locator)
                if entries:
                    handle, _ = entries.pop()
                    if not entries:
                        del self._idle[locator]
                elif self._open_count < self.max_open_handles:
                    self._open_count += 1
                    reserved = True
                else:
                    oldest = self._pop_oldest()
                    if oldest is not None:
                        stale.append(oldest)
                    elif not stale:
                        self._condition.wait()
            self._close_handles(stale)
            if handle is not None:
                return handle
            if reserved:
                break

        try:
            handle = self._opener(locator)
        except BaseException:
            with self._condition:
                self._open_count -= 1
                self._condition.notify()
            raise
        logger.debug("Pool opened %s (%d open)", locator, self.open_handles)
        return handle

    def release(self, handle: StationDataset) -> None:
        """Return a leased handle; it is kept idle or closed."""
        with self._condition:
            keep = (
                not self._closed
                and self.max_idle_handles > 0
                and sum(len(e) for e in self._idle.values()) < self.max_idle_handles
            )
            if keep:
                self._idle.setdefault(handle.locator, []).append((handle, self._clock()))
                self._condition.notify()
                return
        self._close_handles([handle])

    @contextmanager
    def dataset(self, locator: str) -> Iterator[StationDataset]:
        """Scoped lease: the handle is released on every exit path."""
        handle = self.acquire(locator)
        try:
            yield handle
        finally:
            self.release(handle)

    def close(self) -> None:
        """Close every idle handle; leased handles close on release."""
        with self._condition:
            self._closed = True
            idle = [handle for entries in self._idle.values() for handle, _ in entries]
            self._idle.clear()
            self._condition.notify_all()
        self._close_handles(idle)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _close_handles(self, handles: List[StationDataset]) -> None:
        """Close handles outside the lock; each frees its slot once closed.

        Every handle is closed even if one fails; the first failure is
        re-raised.
        """
        failure = None
        for handle in handles:
            try:
                handle.close()
            except Exception as e:
                logger.warning("Closing %s failed: %s", handle.locator, e)
                if failure is None:
                    failure = e
            finally:
                with self._condition:
                    self._open_count -= 1
                    self._condition.notify()
            logger.debug("Pool closed %s", handle.locator)
        if failure is not None:
            raise failure

    def _pop_expired(self) -> List[StationDataset]:
        """Remove idle handles past the timeout. Called with the condition held."""
        deadline = self._clock() - self.idle_timeout
        expired = []
        for locator in list(self._idle):
            keep = []
            for handle, released_at in self._idle[locator]:
                if released_at <= deadline:
                    expired.append(handle)
                else:
                    keep.append((handle, released_at))
            if keep:
                self._idle[locator] = keep
            else:
                del self._idle[locator]
        return expired

    def _pop_oldest(self) -> Optional[StationDataset]:
        """Remove the longest-idle handle. Called with the condition held."""
        oldest = None
        for locator, entries in self._idle.items():
            for position, (_, released_at) in enumerate(entries):
                if oldest is None or released_at < oldest[2]:
                    oldest = (locator, position, released_at)
        if oldest is None:
            return None
        locator, position, _ = oldest
        handle, _ = self._idle[locator].pop(position)
        if not self._idle[locator]:
            del self._idle[locator]
        return handle
