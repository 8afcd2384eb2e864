"""Tests for the dispatch loop and the arrival/timeout sweep.

Level 0 tasks run first-come-first-served to completion; levels 1-3 form a
multi-level feedback queue with a one-tick quantum. The clock is virtual,
so every run here completes instantly.
"""

import logging

import pytest

from config import SimulationConfig
from events import EventLabel
from simulator import Simulator, StepOutcome, Task, TaskState
from workload import generate_workload


def run(records, **options):
    sim = Simulator(SimulationConfig.from_options(**options))
    sim.load_tasks(records)
    results = sim.run()
    return sim, results


def labels_for(sim, task_id):
    return [(e.tick, e.label) for e in sim.events if e.task_id == task_id]


def dispatch_ticks(sim, task_id):
    return [e.tick for e in sim.events
            if e.task_id == task_id and e.label in (EventLabel.STARTED, EventLabel.CONTINUED)]


class TestTaskRecord:
    """Verify the task record's own transitions."""

    def test_new_task_is_waiting(self):
        task = Task(0, arrival_time=2, priority=1, burst_time=4)
        assert task.state is TaskState.WAITING
        assert task.start_time == -1
        assert task.completion_time == -1
        assert task.name == "Task1"

    def test_priority_zero_is_realtime(self):
        assert Task(0, 0, 0, 1).is_realtime
        assert not Task(1, 0, 2, 1).is_realtime

    def test_invalid_task_raises(self):
        with pytest.raises(ValueError):
            Task(0, 0, 1, 0)
        with pytest.raises(ValueError):
            Task(0, -1, 1, 3)

    def test_execute_keeps_work_conserved(self):
        task = Task(0, 0, 1, 2)
        task.admit(0)
        task.start(0)
        task.execute(1)
        assert task.remaining_time == task.burst_time - task.executed_time == 1
        assert task.last_active_time == 1
        task.execute(2)
        task.execute(3)
        assert task.remaining_time == 0
        assert task.executed_time == 2

    def test_terminated_task_is_not_mutated(self):
        task = Task(0, 0, 1, 3)
        task.admit(0)
        task.terminate(5, timed_out=True)
        task.start(6)
        task.execute(7)
        task.terminate(8)
        assert task.state is TaskState.TERMINATED
        assert task.completion_time == 5
        assert task.remaining_time == 3
        assert task.start_time == -1
        assert task.timed_out


class TestScenarios:
    """The reference scenarios, encoded literally."""

    def test_single_realtime_task_runs_to_completion(self):
        sim, results = run([(0, 0, 3)])
        task = sim.tasks[0]
        assert task.start_time == 0
        assert task.completion_time == 3
        assert labels_for(sim, 0) == [
            (0, EventLabel.ARRIVED),
            (0, EventLabel.STARTED),
            (1, EventLabel.RUNNING),
            (2, EventLabel.RUNNING),
            (3, EventLabel.TERMINATED),
        ]
        assert sim.completed_count == 1
        assert sim.context_switches == 1
        assert results["elapsed_ticks"] == 3

    def test_single_user_task_is_demoted_then_finishes(self):
        sim, _ = run([(0, 1, 2)])
        events = [(e.tick, e.label, e.priority) for e in sim.events]
        assert events == [
            (0, EventLabel.ARRIVED, 1),
            (0, EventLabel.STARTED, 1),
            (1, EventLabel.SUSPENDED, 2),
            (1, EventLabel.CONTINUED, 2),
            (2, EventLabel.TERMINATED, 2),
        ]
        assert sim.tasks[0].completion_time == 2
        assert sim.context_switches == 2

    def test_realtime_task_runs_before_user_task_arriving_together(self):
        sim, _ = run([(0, 0, 2), (0, 1, 5)])
        rt, user = sim.tasks
        assert rt.start_time == 0
        assert rt.completion_time == 2
        assert user.start_time == 2
        assert dispatch_ticks(sim, 1) == [2, 3, 4, 5, 6]
        assert user.completion_time == 7
        assert sim.context_switches == 6

    def test_sole_user_task_never_times_out(self):
        sim, results = run([(0, 3, 100)])
        task = sim.tasks[0]
        assert not task.timed_out
        assert task.completion_time == 100
        assert results["completed"] == 1
        assert results["timed_out"] == 0
        assert sim.context_switches == 100

    def test_starved_user_task_times_out_behind_realtime(self):
        sim, results = run([(0, 0, 30), (0, 1, 2)])
        rt, user = sim.tasks
        assert user.timed_out
        assert user.completion_time == 20
        assert user.start_time == -1
        assert (20, EventLabel.TIMED_OUT) in labels_for(sim, 1)
        assert rt.completion_time == 30
        assert sim.completed_count == 2
        assert results["completed"] == 1
        assert results["timed_out"] == 1


class TestTimeoutBasis:
    """Sliding and arrival-based deadlines differ once a task has run."""

    records = [(0, 1, 3), (1, 0, 25)]

    def test_sliding_deadline_counts_from_last_run(self):
        sim, _ = run(self.records, timeout_basis="last_active")
        user = sim.tasks[0]
        assert user.start_time == 0
        assert user.timed_out
        assert user.completion_time == 21

    def test_arrival_deadline_counts_from_arrival(self):
        sim, _ = run(self.records, timeout_basis="arrival")
        user = sim.tasks[0]
        assert user.timed_out
        assert user.completion_time == 20

    def test_grace_deadline_gives_a_started_task_one_more_tick(self):
        sim, _ = run(self.records, timeout_basis="grace")
        user = sim.tasks[0]
        assert user.timed_out
        assert user.completion_time == 21

    def test_grace_deadline_for_a_task_that_never_started(self):
        sim, _ = run([(0, 0, 30), (0, 1, 2)], timeout_basis="grace")
        assert sim.tasks[1].completion_time == 20

    def test_arrival_deadline_times_out_even_a_sole_runner(self):
        sim, _ = run([(0, 3, 100)], timeout_basis="arrival")
        task = sim.tasks[0]
        assert task.timed_out
        assert task.completion_time == 20
        assert task.executed_time == 20
        assert task.remaining_time == 80


class TestQueueOrdering:
    """A demoted task and a fresh arrival meeting at the same level."""

    records = [(0, 1, 2), (1, 2, 1)]

    def test_activity_order_prefers_lower_id_on_equal_activity(self):
        sim, _ = run(self.records, ordering="activity")
        first, second = sim.tasks
        assert first.completion_time == 2
        assert second.completion_time == 3

    def test_fifo_order_serves_earlier_insertion(self):
        sim, _ = run(self.records, ordering="fifo")
        first, second = sim.tasks
        assert second.completion_time == 2
        assert first.completion_time == 3


class TestDemotion:

    def test_clamped_demotion_stops_at_lowest_user_level(self):
        sim, _ = run([(0, 1, 5)], demotion="clamped")
        priorities = [e.priority for e in sim.events if e.label is EventLabel.SUSPENDED]
        assert priorities == [2, 3, 3, 3]
        assert sim.tasks[0].current_priority == 3

    def test_unbounded_demotion_keeps_going(self):
        sim, _ = run([(0, 1, 5)], demotion="unbounded")
        assert sim.tasks[0].current_priority == 5
        assert sim.tasks[0].completion_time == 5

    def test_realtime_priority_never_changes(self):
        sim, _ = run([(0, 0, 4)], demotion="unbounded")
        assert {e.priority for e in sim.events} == {0}


class TestSweep:
    """Arrival and timeout passes."""

    def test_arrival_pass_is_idempotent(self):
        sim = Simulator()
        sim.load_tasks([(0, 1, 2), (0, 0, 1), (3, 1, 1)])
        assert len(sim.check_arrivals()) == 2
        assert sim.check_arrivals() == []
        assert len(sim.queues) == 2

    def test_timeout_pass_is_idempotent(self):
        sim = Simulator()
        sim.load_tasks([(0, 1, 2)])
        sim.check_arrivals()
        sim.current_tick = 25
        assert len(sim.check_timeouts()) == 1
        assert sim.check_timeouts() == []
        assert sim.completed_count == 1

    def test_waiting_tasks_do_not_time_out(self):
        sim = Simulator()
        sim.load_tasks([(30, 1, 2)])
        sim.current_tick = 29
        assert sim.check_timeouts() == []

    def test_timed_out_task_is_never_dispatched(self):
        sim = Simulator()
        sim.load_tasks([(0, 1, 2)])
        sim.check_arrivals()
        sim.current_tick = 20
        sim.check_timeouts()
        assert sim.queues.remove(1) is None

    def test_late_arrival_waits_through_idle_ticks(self):
        sim, results = run([(5, 1, 1)])
        task = sim.tasks[0]
        assert task.start_time == 5
        assert task.completion_time == 6
        assert task.response_time == 0
        assert results["elapsed_ticks"] == 6


class TestInvariants:
    """Properties that must hold on any workload."""

    @pytest.fixture(params=["balanced", "bursty", "real_time", "starvation"])
    def traced(self, request):
        records = generate_workload(request.param, num_tasks=30, seed=7)
        sim = Simulator()
        snapshots = []

        def check(event):
            running = [t for t in sim.tasks if t.state is TaskState.RUNNING]
            assert len(running) <= 1
            for t in sim.tasks:
                assert t.remaining_time == t.burst_time - t.executed_time
                assert t.remaining_time >= 0
            snapshots.append(sim.queues.snapshot())

        sim.listener = check
        sim.load_tasks(records)
        sim.run()
        return sim, snapshots

    def test_every_task_reaches_a_terminal_state(self, traced):
        sim, _ = traced
        assert sim.outcome is StepOutcome.FINISHED
        assert all(t.is_terminated for t in sim.tasks)

    def test_user_priority_never_decreases(self, traced):
        sim, _ = traced
        seen = {}
        for event in sim.events:
            assert event.priority >= seen.get(event.task_id, event.priority)
            seen[event.task_id] = event.priority

    def test_task_is_queued_at_most_once(self, traced):
        _, snapshots = traced
        for snapshot in snapshots:
            ids = [task_id for level in snapshot.values() for task_id in level]
            assert len(ids) == len(set(ids))

    def test_realtime_runs_are_atomic(self, traced):
        sim, _ = traced
        rt_ids = {t.task_id for t in sim.tasks if t.is_realtime}
        running_rt = None
        for event in sim.events:
            if event.label is EventLabel.STARTED and event.task_id in rt_ids:
                running_rt = event.task_id
            elif event.label in (EventLabel.STARTED, EventLabel.CONTINUED):
                assert running_rt is None
            elif event.label is EventLabel.TERMINATED and event.task_id == running_rt:
                running_rt = None


class TestLoopControl:

    def test_empty_task_list_finishes_immediately(self):
        sim, results = run([])
        assert sim.outcome is StepOutcome.FINISHED
        assert results["elapsed_ticks"] == 0
        assert results["cpu_utilization"] == 0.0

    def test_step_reports_each_phase(self):
        sim = Simulator()
        sim.load_tasks([(0, 0, 1), (0, 1, 1), (4, 1, 1)])
        outcomes = []
        outcome = sim.step()
        while outcome is not StepOutcome.FINISHED:
            outcomes.append(outcome)
            outcome = sim.step()
        assert outcomes == [StepOutcome.REALTIME, StepOutcome.USER,
                            StepOutcome.IDLE, StepOutcome.IDLE, StepOutcome.USER]

    def test_stop_before_run_dispatches_nothing(self):
        sim = Simulator()
        sim.load_tasks([(0, 1, 3)])
        sim.stop()
        results = sim.run()
        assert sim.outcome is StepOutcome.STOPPED
        assert results["outcome"] == "stopped"
        assert sim.tasks[0].start_time == -1

    def test_stop_during_realtime_run_requeues_the_task(self):
        sim = Simulator()

        def stop_on_first_tick(event):
            if event.label is EventLabel.RUNNING:
                sim.stop()

        sim.listener = stop_on_first_tick
        sim.load_tasks([(0, 0, 3)])
        sim.run()
        task = sim.tasks[0]
        assert sim.outcome is StepOutcome.STOPPED
        assert task.state is TaskState.READY
        assert task.remaining_time == 2
        assert task in sim.queues
        assert sim.running_task is None

    def test_stall_exit_when_a_ready_task_can_never_run(self):
        sim, results = run([(0, 1, 1), (0, 1, 1)], queue_capacity=1, stall_factor=0, stall_slack=0)
        assert sim.outcome is StepOutcome.STALLED
        assert results["completed"] == 1
        assert results["unfinished"] == 1

    def test_load_truncates_at_max_tasks(self):
        sim = Simulator(SimulationConfig(max_tasks=2))
        assert sim.load_tasks([(0, 1, 1)] * 5) == 2

    def test_reload_after_stop_runs_again(self):
        sim = Simulator()
        sim.load_tasks([(0, 1, 2)])
        sim.stop()
        sim.run()
        sim.load_tasks([(0, 1, 2)])
        results = sim.run()
        assert sim.outcome is StepOutcome.FINISHED
        assert results["completed"] == 1

    def test_reload_of_finished_tasks_starts_them_over(self):
        sim, _ = run([(0, 0, 2), (0, 1, 3)])
        finished = sim.tasks
        sim.load_tasks(finished)
        assert all(t.state is TaskState.WAITING for t in sim.tasks)
        assert all(t.start_time == -1 and t.executed_time == 0 for t in sim.tasks)
        assert [t.current_priority for t in sim.tasks] == [0, 1]
        results = sim.run()
        assert results["completed"] == 2
        assert results["elapsed_ticks"] == 5

    def test_fresh_task_objects_are_kept_as_given(self):
        task = Task(0, 0, 1, 1)
        sim = Simulator()
        sim.load_tasks([task])
        assert sim.tasks[0] is task


class TestVerboseTrace:

    def test_events_are_not_logged_when_a_listener_prints_them(self, caplog):
        received = []
        sim = Simulator(listener=received.append, verbose=True)
        sim.load_tasks([(0, 1, 1)])
        with caplog.at_level(logging.DEBUG, logger="simulator"):
            sim.run()
        assert len(received) == len(sim.events)
        assert not [r for r in caplog.records if "task started" in r.getMessage()]

    def test_events_are_logged_without_a_listener(self, caplog):
        sim = Simulator(verbose=True)
        sim.load_tasks([(0, 1, 1)])
        with caplog.at_level(logging.DEBUG, logger="simulator"):
            sim.run()
        assert [r for r in caplog.records if "task started" in r.getMessage()]
