"""Process-tree discovery."""
from __future__ import annotations

import logging
from collections import deque

from .probes import ProcessProbe

logger = logging.getLogger(__name__)

__all__ = ["ProcessTreeResolver"]


class ProcessTreeResolver:
    """Walk a probe's parent/child relation breadth first."""

    def __init__(self, probe: ProcessProbe) -> None:
        self.probe = probe

    async def find_descendants(self, root_pid: int, timeout: float | None = None) -> list[int]:
        """Return every descendant of *root_pid*, shallowest first.

        The root itself is never part of the result; callers terminate it
        last. A visited set keeps malformed or cyclic parent data from
        looping forever, and a failure listing one node's children only
        drops that subtree.
        """

        result: list[int] = []
        queue: deque[int] = deque([root_pid])
        visited: set[int] = {root_pid}

        logger.debug("Finding descendants of PID %s...", root_pid)
        while queue:
            current = queue.popleft()
            try:
                children = await self.probe.list_direct_children(current, timeout=timeout)
            except Exception as exc:
                logger.warning("Failed to find children of PID %s: %s", current, exc)
                continue

            logger.debug("PID %s has %d children", current, len(children))
            for child in children:
                if child in visited:
                    continue
                visited.add(child)
                result.append(child)
                queue.append(child)

        logger.debug("Found %d descendants of PID %s", len(result), root_pid)
        return result
