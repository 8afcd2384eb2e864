import heapq
import itertools
import logging
from typing import Dict, List, Optional

from policies.ordering import ActivityOrdering

logger = logging.getLogger(__name__)


class PriorityQueueSet:
    """Ready queues indexed by priority level (0 is the highest).

    Each level is a heap ordered by the key the ordering policy produces at
    insertion time. Holds references only; terminated tasks are purged
    lazily from the head of a level.
    """

    def __init__(self, ordering=None, capacity=200):
        self.ordering = ordering or ActivityOrdering()
        self.capacity = capacity
        self._levels: Dict[int, list] = {}
        self._members: Dict[int, int] = {}  # task_id -> level
        self._sequence = itertools.count()

    def add(self, level: int, task) -> bool:
        if task is None or level < 0:
            return False
        if task.task_id in self._members:
            logger.warning("Task %d already queued at level %d, ignoring add to level %d",
                           task.task_id, self._members[task.task_id], level)
            return False
        heap = self._levels.setdefault(level, [])
        if len(heap) >= self.capacity:
            logger.warning("Queue level %d full (%d tasks), dropping task %d",
                           level, self.capacity, task.task_id)
            return False
        seq = next(self._sequence)
        heapq.heappush(heap, (self.ordering.key(task, seq), seq, task))
        self._members[task.task_id] = level
        return True

    def _purge(self, level):
        heap = self._levels.get(level)
        if not heap:
            return
        while heap and heap[0][2].is_terminated:
            _, _, stale = heapq.heappop(heap)
            self._members.pop(stale.task_id, None)

    def remove(self, level: int):
        self._purge(level)
        heap = self._levels.get(level)
        if not heap:
            return None
        _, _, task = heapq.heappop(heap)
        self._members.pop(task.task_id, None)
        return task

    def is_empty(self, level: int) -> bool:
        self._purge(level)
        return not self._levels.get(level)

    def highest_non_empty(self, start: int = 0) -> Optional[int]:
        for level in sorted(self._levels):
            if level >= start and not self.is_empty(level):
                return level
        return None

    def level_size(self, level: int) -> int:
        return len(self._levels.get(level, ()))

    def levels(self) -> List[int]:
        return sorted(level for level, heap in self._levels.items() if heap)

    def snapshot(self) -> Dict[int, List[int]]:
        """Task ids per level, in the order they would be removed."""
        return {level: [entry[2].task_id for entry in sorted(self._levels[level], key=lambda e: (e[0], e[1]))]
                for level in self.levels()}

    def clear(self):
        self._levels.clear()
        self._members.clear()

    def __contains__(self, task):
        return task.task_id in self._members

    def __len__(self):
        return sum(len(heap) for heap in self._levels.values())
