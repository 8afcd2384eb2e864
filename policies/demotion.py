class ClampedDemotion:
    """Demote one level per quantum expiry, never past the lowest user level."""

    name = "clamped"

    def __init__(self, lowest_level=3):
        self.lowest_level = lowest_level

    def demote(self, task):
        if task.is_realtime:
            return task.current_priority
        if task.current_priority < self.lowest_level:
            task.current_priority += 1
        return task.current_priority


class UnboundedDemotion:
    name = "unbounded"

    def demote(self, task):
        if task.is_realtime:
            return task.current_priority
        task.current_priority += 1
        return task.current_priority


def make_demotion(name, lowest_level=3):
    if name == "clamped":
        return ClampedDemotion(lowest_level)
    if name == "unbounded":
        return UnboundedDemotion()
    raise ValueError(f"Unknown demotion policy: {name!r}")
