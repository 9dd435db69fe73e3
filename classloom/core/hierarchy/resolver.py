"""Inheritance chain resolution.

Walks a class's superclasses depth-first (preorder, declared order) with
an explicit stack of iterators, so deep chains never hit the recursion
limit. Each ``resolve()`` call is one session: its own visited set and
fetch cache, so a name is fetched at most once per session and cycles
terminate.

Provider failures are never fatal here. A missing class or a
ProviderError becomes a placeholder and the walk continues.
"""

import asyncio
import logging
from typing import Dict, Iterator, List, Optional, Set, Tuple

from ..errors import ProviderError
from ..providers.base import ClassInfoProvider
from ..providers.models import ClassInfo, HierarchyGraph, ResolvedHierarchy

logger = logging.getLogger(__name__)


class _FetchSession:
    """Per-resolution fetch cache.

    Maps class name -> fetch task. Check-and-insert happens under a lock
    so concurrent prefetches never issue a second fetch for a name.
    """

    def __init__(self, provider: ClassInfoProvider, max_concurrency: int):
        self._provider = provider
        self._tasks: Dict[str, asyncio.Task] = {}
        self._lock = asyncio.Lock()
        self._semaphore = asyncio.Semaphore(max(1, max_concurrency))
        self.fetch_count = 0

    async def _load(self, class_name: str) -> ClassInfo:
        async with self._semaphore:
            self.fetch_count += 1
            try:
                info = await self._provider.fetch(class_name)
            except ProviderError as e:
                logger.warning("Provider failed for %s, using placeholder: %s", class_name, e)
                return ClassInfo.placeholder(class_name)

        if info is None:
            logger.warning("Class %s not found, using placeholder", class_name)
            return ClassInfo.placeholder(class_name)
        return info

    async def schedule(self, class_name: str) -> asyncio.Task:
        async with self._lock:
            task = self._tasks.get(class_name)
            if task is None:
                task = asyncio.create_task(self._load(class_name))
                self._tasks[class_name] = task
            return task

    async def get(self, class_name: str) -> ClassInfo:
        task = await self.schedule(class_name)
        # Shielded: cancelling the walk must not abort a fetch mid-flight
        return await asyncio.shield(task)

    async def drain(self) -> None:
        """Wait for fetches still in flight; their results are discarded."""
        pending = [t for t in self._tasks.values() if not t.done()]
        if pending:
            logger.debug("Draining %d in-flight fetches", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)


class HierarchyResolver:
    """Resolve the full ancestor set of a class through a provider.

    Args:
        provider: Backend used for every fetch
        max_concurrency: Upper bound on simultaneous provider fetches.
            1 (default) fetches strictly one class at a time; higher values
            prefetch a class's superclasses while the walk continues.
            Output order is the same either way.
    """

    def __init__(self, provider: ClassInfoProvider, max_concurrency: int = 1):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._provider = provider
        self._max_concurrency = max_concurrency

    async def resolve(
        self,
        root_class_name: str,
        max_depth: Optional[int] = None,
    ) -> ResolvedHierarchy:
        """Resolve ``root_class_name`` and every reachable superclass.

        Args:
            root_class_name: Class to start from
            max_depth: Deepest superclass level to expand (root is 0,
                direct superclasses are 1). None means unlimited. Edges
                to classes beyond the limit are kept; the classes
                themselves are not fetched and are listed in ``truncated``.

        Returns:
            ResolvedHierarchy with ancestors in depth-first preorder
        """
        if max_depth is not None and max_depth < 0:
            raise ValueError("max_depth must be >= 0")

        session = _FetchSession(self._provider, self._max_concurrency)
        try:
            result = await self._walk(session, root_class_name, max_depth)
        finally:
            await session.drain()

        logger.info(
            "Resolved %s: %d ancestors, %d fetches%s",
            root_class_name,
            len(result.ancestors),
            result.fetch_count,
            f", {len(result.truncated)} truncated" if result.truncated else "",
        )
        return result

    async def _walk(
        self,
        session: _FetchSession,
        root_class_name: str,
        max_depth: Optional[int],
    ) -> ResolvedHierarchy:
        visited: Set[str] = {root_class_name}
        ancestors: List[ClassInfo] = []
        hierarchy: HierarchyGraph = {}
        truncated: List[str] = []

        root = await session.get(root_class_name)
        if root.direct_superclasses:
            hierarchy[root_class_name] = list(root.direct_superclasses)

        stack: List[Tuple[int, Iterator[str]]] = [(0, iter(root.direct_superclasses))]
        await self._prefetch(session, root, 0, max_depth, visited)

        while stack:
            depth, supers = stack[-1]
            name = next(supers, None)
            if name is None:
                stack.pop()
                continue
            if name in visited:
                continue
            if max_depth is not None and depth + 1 > max_depth:
                if name not in truncated:
                    truncated.append(name)
                continue

            visited.add(name)
            info = await session.get(name)
            ancestors.append(info)

            if info.direct_superclasses:
                hierarchy[name] = list(info.direct_superclasses)
                await self._prefetch(session, info, depth + 1, max_depth, visited)
                stack.append((depth + 1, iter(info.direct_superclasses)))

        return ResolvedHierarchy(
            root=root,
            ancestors=tuple(ancestors),
            hierarchy=hierarchy,
            fetch_count=session.fetch_count,
            # A name cut off on one path may still be reached on a shorter one
            truncated=tuple(n for n in truncated if n not in visited),
        )

    async def _prefetch(
        self,
        session: _FetchSession,
        info: ClassInfo,
        depth: int,
        max_depth: Optional[int],
        visited: Set[str],
    ) -> None:
        if self._max_concurrency <= 1:
            return
        if max_depth is not None and depth + 1 > max_depth:
            return
        for name in info.direct_superclasses:
            if name not in visited:
                await session.schedule(name)
