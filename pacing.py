import threading


class VirtualPacer:
    """Advances the virtual clock with no real delay."""

    def wait(self):
        return None


class RealTimePacer:
    """Holds each tick for a fixed wall-clock duration.

    Waits on the stop event rather than sleeping so a stop request ends the
    current tick immediately.
    """

    def __init__(self, tick_seconds, stop_event=None):
        self.tick_seconds = tick_seconds
        self.stop_event = stop_event or threading.Event()

    def wait(self):
        self.stop_event.wait(self.tick_seconds)


def make_pacer(tick_seconds, stop_event=None):
    if tick_seconds and tick_seconds > 0:
        return RealTimePacer(tick_seconds, stop_event)
    return VirtualPacer()
