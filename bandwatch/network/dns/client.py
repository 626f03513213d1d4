"""Background resolution of addresses to host names."""

from __future__ import annotations

import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, Set

from bandwatch.network.connection import IpAddress
from bandwatch.network.dns.resolver import Lookup

CHANNEL_SIZE = 1_000

_STOP = object()


class Client:
    """Resolves addresses in the background and caches the names found."""

    def __init__(self, resolver: Lookup, max_workers: int = 16) -> None:
        self._resolver = resolver
        self._cache: Dict[IpAddress, str] = {}
        self._pending: Set[IpAddress] = set()
        self._lock = threading.Lock()
        self._requests: queue.Queue = queue.Queue(maxsize=CHANNEL_SIZE)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="resolver"
        )
        self._closed = False
        self._thread = threading.Thread(target=self._dispatch, name="resolver", daemon=True)
        self._thread.start()

    def _dispatch(self) -> None:
        while True:
            ips = self._requests.get()
            if ips is _STOP:
                return
            for ip in ips:
                self._executor.submit(self._lookup, ip)

    def _lookup(self, ip: IpAddress) -> None:
        try:
            name = self._resolver.lookup(ip)
            if name is not None:
                with self._lock:
                    self._cache[ip] = name
        finally:
            with self._lock:
                self._pending.discard(ip)

    def resolve(self, ips: Iterable[IpAddress]) -> None:
        """Queue addresses for lookup, skipping those already being looked up."""
        if self._closed:
            raise RuntimeError("DNS client is closed")
        with self._lock:
            fresh = [ip for ip in dict.fromkeys(ips) if ip not in self._pending]
            self._pending.update(fresh)
        if fresh:
            try:
                self._requests.put_nowait(fresh)
            except queue.Full:
                # Dropped; the addresses are asked for again on a later refresh.
                pass

    def cache(self) -> Dict[IpAddress, str]:
        """A copy of the names found so far."""
        with self._lock:
            return dict(self._cache)

    def close(self) -> None:
        """Stop taking requests and wait for outstanding lookups."""
        if self._closed:
            return
        self._closed = True
        self._requests.put(_STOP)
        self._thread.join()
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()