class ActivityOrdering:
    """Tasks that have been inactive longer sit nearer the head of their level."""

    name = "activity"

    def key(self, task, sequence):
        return (task.last_active_time, task.task_id, sequence)


class FifoOrdering:
    name = "fifo"

    def key(self, task, sequence):
        return (sequence,)


def make_ordering(name):
    if name == "activity":
        return ActivityOrdering()
    if name == "fifo":
        return FifoOrdering()
    raise ValueError(f"Unknown queue ordering: {name!r}")
