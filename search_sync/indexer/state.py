"""
Process-wide record of indexes that have been reset.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Set

logger = logging.getLogger(__name__)


class InitializedIndexSet:
    """
    Set of index names whose drop/settings sequence already ran.

    Grows monotonically. Concurrent first-time initializations of the same
    index are serialized by a per-index lock so the sequence runs exactly
    once; later callers wait until it has finished.
    """

    def __init__(self):
        self._names: Set[str] = set()
        self._locks: Dict[str, asyncio.Lock] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __len__(self) -> int:
        return len(self._names)

    @property
    def names(self) -> Set[str]:
        return set(self._names)

    async def initialize_once(
        self,
        name: str,
        initializer: Callable[[], Awaitable[None]]
    ) -> bool:
        """
        Run ``initializer`` if ``name`` has never been initialized.

        The name is marked even when the initializer raises, so a failing
        reset is not retried within this process.

        Returns:
            True if this call ran the initializer
        """
        if name in self._names:
            return False

        lock = self._locks.setdefault(name, asyncio.Lock())
        async with lock:
            if name in self._names:
                return False
            try:
                await initializer()
            finally:
                self._names.add(name)
                logger.debug(f"Index {name} marked as initialized")
        return True
