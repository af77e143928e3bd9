"""
Forwarding rules of the gateway.

Requests are assigned to an upstream pool by path prefix and HTTP
method:

* anything outside ``/api`` goes to the ``full`` pool, whatever the
  method;
* under ``/api``, GET, POST, PUT and DELETE each go to the pool of the
  same name;
* any other method under ``/api`` has no rule and is rejected.

Within a pool, upstreams are picked round-robin.
"""

from __future__ import annotations

import itertools
from typing import Dict, Iterable, List, Mapping, Tuple

API_PREFIX = "/api"
FULL_POOL = "full"
METHOD_POOLS: Dict[str, str] = {
    "GET": "get",
    "POST": "post",
    "PUT": "put",
    "DELETE": "delete",
}


class RoutingError(Exception):
    pass


class MethodNotRouted(RoutingError):
    """No rule exists for this method under ``/api``."""

    def __init__(self, method: str, path: str):
        super().__init__(f"no route for {method} {path}")
        self.method = method
        self.path = path
        self.allowed = list(METHOD_POOLS)


class PoolConfigError(RoutingError):
    """The pool table is missing a pool or a pool has no upstreams."""


def is_api_path(path: str) -> bool:
    return path == API_PREFIX or path.startswith(API_PREFIX + "/")


def select_pool(path: str, method: str) -> str:
    """Return the name of the pool that serves ``method`` on ``path``."""
    if not is_api_path(path):
        return FULL_POOL
    pool = METHOD_POOLS.get(method.upper())
    if pool is None:
        raise MethodNotRouted(method.upper(), path)
    return pool


class Pool:
    """A named group of interchangeable upstreams."""

    def __init__(self, name: str, upstreams: Iterable[str]):
        self.name = name
        self.upstreams: List[str] = [u.rstrip("/") for u in upstreams]
        if not self.upstreams:
            raise PoolConfigError(f"pool {name!r} has no upstreams")
        self._cycle = itertools.cycle(self.upstreams)

    def next_upstream(self) -> str:
        return next(self._cycle)

    def __repr__(self) -> str:
        return f"Pool({self.name!r}, {self.upstreams!r})"


class RuleTable:
    """Maps a request to a pool and an upstream base URL."""

    def __init__(self, pools: Mapping[str, Iterable[str]]):
        required = [FULL_POOL, *METHOD_POOLS.values()]
        missing = [name for name in required if name not in pools]
        if missing:
            raise PoolConfigError(f"missing pool(s): {', '.join(missing)}")
        self.pools: Dict[str, Pool] = {name: Pool(name, pools[name]) for name in required}

    def route(self, path: str, method: str) -> Tuple[str, str]:
        """Return ``(pool name, upstream base url)`` for a request."""
        pool = self.pools[select_pool(path, method)]
        return pool.name, pool.next_upstream()

    def describe(self) -> Dict[str, List[str]]:
        return {name: list(pool.upstreams) for name, pool in self.pools.items()}
