"""
cache.py

Type Cache.

Process-wide memo from (contract id, base type) to synthesized class.

Guarantees:
- Idempotent: the same key always yields the same class
- Single synthesis: concurrent first callers for one key wait on a
  per-key lock; the synthesizer runs once and every caller gets its result
- No eviction, no reset: contracts are a finite, load-time set
- A failed synthesis stores nothing, so the key is not poisoned
"""

import logging
import threading
from typing import Callable, Dict, Hashable, Iterator, List, Optional, Tuple

from capset.contract import Contract
from capset.resolver import ResolvedPropertySet, resolve
from capset.synthesizer import synthesize

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, Optional[type]]
Synthesizer = Callable[[Contract, Optional[type]], type]


class TypeCache:
    """
    Thread-safe get-or-add store of synthesized types.

    Attributes:
        synthesizer: Callable building a class for (contract, base_type)
    """

    __slots__ = ('_synthesizer', '_types', '_key_locks', '_lock')

    def __init__(self, synthesizer: Synthesizer = synthesize):
        self._synthesizer = synthesizer
        self._types: Dict[CacheKey, type] = {}
        self._key_locks: Dict[CacheKey, threading.Lock] = {}
        self._lock = threading.Lock()

    @staticmethod
    def key_for(contract: Contract, base_type: Optional[type] = None) -> CacheKey:
        if not isinstance(contract, Contract):
            raise TypeError(f"expected Contract, got {type(contract).__name__}")
        return (contract.contract_id, base_type)

    def _lock_for(self, key: CacheKey) -> threading.Lock:
        with self._lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            return lock

    def get_or_synthesize(self, contract: Contract, base_type: Optional[type] = None) -> type:
        """
        Return the class for (contract, base_type), synthesizing it once.

        Raises:
            Whatever the synthesizer raises; nothing is cached on failure.
        """
        key = self.key_for(contract, base_type)
        cached = self._types.get(key)
        if cached is not None:
            return cached

        with self._lock_for(key):
            cached = self._types.get(key)
            if cached is not None:
                return cached
            logger.debug("Type cache miss for %s (base=%s)", contract.name, base_type)
            synthesized = self._synthesizer(contract, base_type)
            self._types[key] = synthesized
            return synthesized

    def get(self, contract: Contract, base_type: Optional[type] = None) -> Optional[type]:
        """Cached class or None, without synthesizing."""
        return self._types.get(self.key_for(contract, base_type))

    def resolved(self, contract: Contract) -> ResolvedPropertySet:
        """Resolved properties for a contract, cached independently of types."""
        return resolve(contract)

    def keys(self) -> List[CacheKey]:
        return list(self._types)

    def __contains__(self, key: Hashable) -> bool:
        if isinstance(key, Contract):
            key = self.key_for(key)
        return key in self._types

    def __len__(self) -> int:
        return len(self._types)

    def __iter__(self) -> Iterator[CacheKey]:
        return iter(list(self._types))

    def __repr__(self) -> str:
        return f"TypeCache(types={len(self._types)})"


# =============================================================================
# Process-wide Instance
# =============================================================================

_default_cache: Optional[TypeCache] = None
_default_cache_lock = threading.Lock()


def default_cache() -> TypeCache:
    """The process-wide TypeCache, created on first use."""
    global _default_cache
    if _default_cache is None:
        with _default_cache_lock:
            if _default_cache is None:
                _default_cache = TypeCache()
    return _default_cache


def get_type(contract: Contract, base_type: Optional[type] = None) -> type:
    """Synthesized class for a contract from the process-wide cache."""
    return default_cache().get_or_synthesize(contract, base_type)
