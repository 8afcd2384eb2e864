class SlidingTimeout:
    """Deadline slides forward every time the task is admitted or runs."""

    name = "last_active"

    def __init__(self, timeout_ticks=20):
        self.timeout_ticks = timeout_ticks

    def deadline(self, task):
        return task.last_active_time + self.timeout_ticks


class ArrivalTimeout:
    """Deadline fixed at arrival, regardless of how much the task has run."""

    name = "arrival"

    def __init__(self, timeout_ticks=20):
        self.timeout_ticks = timeout_ticks

    def deadline(self, task):
        return task.arrival_time + self.timeout_ticks


class GraceTimeout:
    """Deadline fixed at arrival, with a grace window for tasks that have run.

    A task that never started times out at ``arrival + timeout_ticks``. A
    started task times out one tick later, and only if its last run ended
    before ``arrival + timeout_ticks - grace``; otherwise it never does.
    """

    name = "grace"

    def __init__(self, timeout_ticks=20, grace=2):
        self.timeout_ticks = timeout_ticks
        self.grace = grace

    def deadline(self, task):
        fixed = task.arrival_time + self.timeout_ticks
        if not task.has_started:
            return fixed
        if task.last_active_time < fixed - self.grace:
            return fixed + 1
        return float("inf")


def make_timeout(name, timeout_ticks=20):
    if name == "last_active":
        return SlidingTimeout(timeout_ticks)
    if name == "arrival":
        return ArrivalTimeout(timeout_ticks)
    if name == "grace":
        return GraceTimeout(timeout_ticks)
    raise ValueError(f"Unknown timeout basis: {name!r}")
