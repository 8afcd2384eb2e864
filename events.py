from dataclasses import dataclass, asdict
from enum import Enum
from typing import List

import pandas as pd


class EventLabel(Enum):
    ARRIVED = "arrived"
    STARTED = "started"
    RUNNING = "running"
    CONTINUED = "continued"
    SUSPENDED = "suspended"
    TIMED_OUT = "timed-out"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class TraceEvent:
    tick: int
    task_id: int
    priority: int
    remaining: int
    label: EventLabel


def format_event(event: TraceEvent) -> str:
    return (f"{event.tick:.4f} s  task {event.label.value:<11} "
            f"(id:{event.task_id:04d} priority:{event.priority} remaining:{event.remaining} s)")


def events_frame(events: List[TraceEvent]) -> pd.DataFrame:
    rows = []
    for event in events:
        row = asdict(event)
        row["label"] = event.label.value
        rows.append(row)
    return pd.DataFrame(rows, columns=["tick", "task_id", "priority", "remaining", "label"])


def execution_segments(events: List[TraceEvent]):
    """Derive contiguous run intervals per task from a trace.

    A dispatch opens a segment at its tick; the next event that ends the run
    (suspended, terminated) closes it. Returns dicts with task_id, priority,
    start and end, suitable for a Gantt chart.
    """
    segments = []
    open_runs = {}
    for event in events:
        if event.label in (EventLabel.STARTED, EventLabel.CONTINUED):
            open_runs[event.task_id] = (event.tick, event.priority)
        elif event.label in (EventLabel.SUSPENDED, EventLabel.TERMINATED):
            if event.task_id in open_runs:
                start, priority = open_runs.pop(event.task_id)
                segments.append({
                    "task_id": event.task_id,
                    "priority": priority,
                    "start": start,
                    "end": event.tick,
                })
    return segments
