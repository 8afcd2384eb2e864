import logging
import threading
from enum import Enum
from typing import List, Optional

from config import PRIORITY_HIGH, PRIORITY_REALTIME, SimulationConfig
from events import EventLabel, TraceEvent, format_event
from metrics import compute_statistics
from pacing import make_pacer
from policies.demotion import make_demotion
from policies.ordering import make_ordering
from policies.timeout import make_timeout
from task_queues import PriorityQueueSet

logger = logging.getLogger(__name__)


class TaskState(Enum):
    WAITING = "waiting"
    READY = "ready"
    RUNNING = "running"
    SUSPENDED = "suspended"
    TERMINATED = "terminated"


class TaskType(Enum):
    REALTIME = "real-time"
    USER = "user"


class Task:
    def __init__(self, task_id, arrival_time, priority, burst_time, name=None):
        if arrival_time < 0 or priority < 0 or burst_time <= 0:
            raise ValueError(
                f"Invalid task ({arrival_time}, {priority}, {burst_time}): "
                "arrival and priority must be >= 0, burst must be > 0")
        self.task_id = task_id
        self.name = name or f"Task{task_id + 1}"
        self.arrival_time = arrival_time
        self.original_priority = priority
        self.current_priority = priority
        self.burst_time = burst_time
        self.remaining_time = burst_time
        self.executed_time = 0
        self.state = TaskState.WAITING
        self.task_type = TaskType.REALTIME if priority == PRIORITY_REALTIME else TaskType.USER

        self.start_time = -1
        self.completion_time = -1
        self.last_active_time = arrival_time
        self.timed_out = False

    def __repr__(self):
        return (f"Task(id={self.task_id}, arrival={self.arrival_time}, priority={self.current_priority}, "
                f"remaining={self.remaining_time}/{self.burst_time}, state={self.state.name})")

    @property
    def is_terminated(self):
        return self.state is TaskState.TERMINATED

    @property
    def is_realtime(self):
        return self.task_type is TaskType.REALTIME

    @property
    def has_started(self):
        return self.start_time != -1

    def admit(self, tick):
        if self.state is not TaskState.WAITING:
            return
        self.state = TaskState.READY
        self.last_active_time = tick

    def start(self, tick):
        if self.is_terminated:
            return
        self.state = TaskState.RUNNING
        if self.start_time == -1:
            self.start_time = tick

    def execute(self, tick):
        """Run one unit of work that ended at ``tick``."""
        if self.is_terminated or self.remaining_time <= 0:
            return self.remaining_time
        self.remaining_time -= 1
        self.executed_time += 1
        self.last_active_time = tick
        return self.remaining_time

    def suspend(self):
        if self.state is TaskState.RUNNING:
            self.state = TaskState.SUSPENDED

    def resume(self):
        if self.state is TaskState.SUSPENDED:
            self.state = TaskState.READY

    def terminate(self, tick, timed_out=False):
        if self.is_terminated:
            return
        self.state = TaskState.TERMINATED
        self.completion_time = tick
        self.timed_out = timed_out

    # Metrics, only meaningful for tasks that ran to completion
    @property
    def completed_normally(self):
        return self.is_terminated and not self.timed_out

    @property
    def turnaround_time(self) -> Optional[int]:
        if not self.completed_normally:
            return None
        return self.completion_time - self.arrival_time

    @property
    def waiting_time(self) -> Optional[int]:
        if not self.completed_normally:
            return None
        return max(0, self.turnaround_time - self.burst_time)

    @property
    def response_time(self) -> Optional[int]:
        if not self.completed_normally or not self.has_started:
            return None
        return self.start_time - self.arrival_time


class StepOutcome(Enum):
    REALTIME = "realtime"
    USER = "user"
    IDLE = "idle"
    FINISHED = "finished"
    STALLED = "stalled"
    STOPPED = "stopped"


TERMINAL_OUTCOMES = (StepOutcome.FINISHED, StepOutcome.STALLED, StepOutcome.STOPPED)


class Simulator:
    """Four-tier scheduler driven by a virtual clock.

    Level 0 is the real-time class (first come, first served, run to
    completion). Levels 1 and up are user classes served as a multi-level
    feedback queue with a one-tick quantum. At most one task runs per tick.
    """

    def __init__(self, config: Optional[SimulationConfig] = None, listener=None, pacer=None, verbose=False):
        self.config = config or SimulationConfig()
        self.listener = listener
        self.verbose = verbose

        self.queues = PriorityQueueSet(make_ordering(self.config.ordering), self.config.queue_capacity)
        self.demotion = make_demotion(self.config.demotion, self.config.lowest_user_priority)
        self.timeout_policy = make_timeout(self.config.timeout_basis, self.config.timeout_ticks)

        self._stop_event = threading.Event()
        self.pacer = pacer or make_pacer(self.config.tick_seconds, self._stop_event)

        self.tasks: List[Task] = []
        self.events: List[TraceEvent] = []
        self.current_tick = 0
        self.completed_count = 0
        self.context_switches = 0
        self.last_arrival = 0
        self.running_task: Optional[Task] = None
        self.outcome: Optional[StepOutcome] = None
        self._primed = False

    def load_tasks(self, tasks):
        """Load Task objects or ``(arrival, priority, burst)`` records."""
        loaded = []
        for item in tasks:
            if len(loaded) >= self.config.max_tasks:
                logger.warning("Task limit (%d) reached, remaining tasks ignored", self.config.max_tasks)
                break
            if not isinstance(item, Task):
                arrival, priority, burst = item
                item = Task(len(loaded), arrival, priority, burst)
            elif item.state is not TaskState.WAITING:
                # Already scheduled once; start over from its load-time attributes
                item = Task(item.task_id, item.arrival_time, item.original_priority, item.burst_time, name=item.name)
            loaded.append(item)

        self.tasks = loaded
        self.last_arrival = max((t.arrival_time for t in loaded), default=0)
        self.queues.clear()
        self.events = []
        self.current_tick = 0
        self.completed_count = 0
        self.context_switches = 0
        self.running_task = None
        self.outcome = None
        self._primed = False
        self._stop_event.clear()
        logger.info("Loaded %d tasks (last arrival at tick %d)", len(loaded), self.last_arrival)
        return len(loaded)

    def stop(self):
        """Request a stop; observed at the next loop iteration or RT tick."""
        self._stop_event.set()

    @property
    def stop_requested(self):
        return self._stop_event.is_set()

    # Arrival / timeout sweep

    def check_arrivals(self) -> List[Task]:
        arrived = []
        for task in self.tasks:
            if task.state is TaskState.WAITING and task.arrival_time == self.current_tick:
                task.admit(self.current_tick)
                self.queues.add(task.current_priority, task)
                self._emit(task, EventLabel.ARRIVED)
                arrived.append(task)
        return arrived

    def check_timeouts(self) -> List[Task]:
        expired = []
        for task in self.tasks:
            if task.is_terminated or task.timed_out:
                continue
            if task.state in (TaskState.WAITING, TaskState.RUNNING):
                continue
            if self.current_tick >= self.timeout_policy.deadline(task):
                task.terminate(self.current_tick, timed_out=True)
                self.completed_count += 1
                self._emit(task, EventLabel.TIMED_OUT)
                expired.append(task)
        return expired

    # Dispatch loop

    def run(self):
        logger.info("Simulation started with %d tasks", len(self.tasks))
        outcome = self.step()
        while outcome not in TERMINAL_OUTCOMES:
            outcome = self.step()
        logger.info("Simulation %s at tick %d (%d/%d tasks done, %d context switches)",
                    outcome.value, self.current_tick, self.completed_count, len(self.tasks),
                    self.context_switches)
        return self.evaluate()

    def step(self) -> StepOutcome:
        """Run one iteration of the dispatch loop."""
        if not self._primed:
            self.check_arrivals()
            self.check_timeouts()
            self._primed = True

        if self._stop_event.is_set():
            return self._set_outcome(StepOutcome.STOPPED)

        self.check_timeouts()

        if not self.queues.is_empty(PRIORITY_REALTIME):
            task = self.queues.remove(PRIORITY_REALTIME)
            if task is not None and not task.is_terminated:
                return self._set_outcome(self._run_realtime(task))

        level = self.queues.highest_non_empty(start=PRIORITY_HIGH)
        if level is not None:
            task = self.queues.remove(level)
            if task is not None and not task.is_terminated:
                return self._set_outcome(self._run_user(task))

        return self._set_outcome(self._idle())

    def _run_realtime(self, task):
        task.start(self.current_tick)
        self.running_task = task
        self._emit(task, EventLabel.STARTED)

        while task.remaining_time > 0:
            if self._stop_event.is_set():
                self._requeue_after_stop(task)
                return StepOutcome.STOPPED
            self._advance_clock()
            task.execute(self.current_tick)
            self.check_arrivals()
            if task.remaining_time > 0:
                self._emit(task, EventLabel.RUNNING)
                self.check_timeouts()

        self._finish(task)
        self.check_timeouts()
        return StepOutcome.REALTIME

    def _run_user(self, task):
        first_dispatch = not task.has_started
        task.start(self.current_tick)
        self.running_task = task
        self._emit(task, EventLabel.STARTED if first_dispatch else EventLabel.CONTINUED)

        self._advance_clock()
        task.execute(self.current_tick)
        self.check_arrivals()
        self.check_timeouts()

        if task.remaining_time == 0:
            self._finish(task)
        else:
            task.suspend()
            self.demotion.demote(task)
            self._emit(task, EventLabel.SUSPENDED)
            task.resume()
            self.running_task = None
            self.queues.add(task.current_priority, task)
            self.context_switches += 1
        return StepOutcome.USER

    def _idle(self):
        if self.completed_count >= len(self.tasks):
            return StepOutcome.FINISHED
        if self.current_tick <= self.last_arrival + self.config.stall_window:
            self._advance_clock()
            self.check_arrivals()
            self.check_timeouts()
            return StepOutcome.IDLE
        stalled = [t.task_id for t in self.tasks if not t.is_terminated]
        logger.warning("No runnable task at tick %d, giving up on %d stalled tasks: %s",
                       self.current_tick, len(stalled), stalled)
        return StepOutcome.STALLED

    def _finish(self, task):
        task.terminate(self.current_tick)
        self.running_task = None
        self.completed_count += 1
        self.context_switches += 1
        self._emit(task, EventLabel.TERMINATED)

    def _requeue_after_stop(self, task):
        task.suspend()
        self._emit(task, EventLabel.SUSPENDED)
        task.resume()
        self.running_task = None
        self.queues.add(task.current_priority, task)

    def _advance_clock(self):
        self.pacer.wait()
        self.current_tick += 1

    def _set_outcome(self, outcome):
        self.outcome = outcome
        return outcome

    def _emit(self, task, label):
        event = TraceEvent(self.current_tick, task.task_id, task.current_priority, task.remaining_time, label)
        self.events.append(event)
        if self.verbose and self.listener is None:
            logger.debug(format_event(event))
        if self.listener is not None:
            self.listener(event)

    def evaluate(self):
        results = compute_statistics(self.tasks, self.current_tick, self.context_switches)
        results["outcome"] = self.outcome.value if self.outcome else None
        return results
