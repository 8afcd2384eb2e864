import argparse
import logging
import signal
import sys

from config import DEMOTIONS, MAX_TASKS, ORDERINGS, TIMEOUT_BASES, TIMEOUT_TICKS, SimulationConfig
from events import format_event
from metrics import format_report, format_task_table, tasks_frame
from simulator import Simulator
from workload import build_tasks, load_tasks_from_file

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Four-tier priority scheduler simulation (level 0 = real-time FCFS, levels 1-3 = MLFQ)",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("task_file", help="Task file with one 'arrival, priority, burst' line per task")
    parser.add_argument("--tick-seconds", type=float, default=1.0,
                        help="Wall-clock length of one tick (0 runs the virtual clock at full speed)")
    parser.add_argument("--timeout-ticks", type=int, default=TIMEOUT_TICKS,
                        help="Ticks of inactivity before a ready task is timed out")
    parser.add_argument("--ordering", choices=ORDERINGS, default="activity",
                        help="Order of tasks within a priority level")
    parser.add_argument("--demotion", choices=DEMOTIONS, default="clamped",
                        help="Clamp user demotion at level 3 or let it grow without bound")
    parser.add_argument("--timeout-basis", choices=TIMEOUT_BASES, default="last_active",
                        help="Measure timeouts from the last activity, from arrival, or from arrival with a grace window for tasks that ran")
    parser.add_argument("--max-tasks", type=int, default=MAX_TASKS, help="Maximum number of tasks loaded")
    parser.add_argument("--csv", metavar="PATH", help="Write the per-task table to a CSV file")
    parser.add_argument("--quiet", action="store_true", help="Do not print the event trace")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv=None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        config = SimulationConfig(
            timeout_ticks=args.timeout_ticks,
            max_tasks=args.max_tasks,
            tick_seconds=args.tick_seconds,
            ordering=args.ordering,
            demotion=args.demotion,
            timeout_basis=args.timeout_basis,
        )
        records = load_tasks_from_file(args.task_file, config.max_tasks)
    except (ValueError, FileNotFoundError) as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1

    if not records:
        print("[ERROR] No tasks could be loaded.", file=sys.stderr)
        return 1

    listener = None if args.quiet else (lambda event: print(format_event(event), flush=True))
    try:
        sim = Simulator(config, listener=listener, verbose=args.verbose)
        sim.load_tasks(build_tasks(records))
    except ValueError as e:
        print(f"[ERROR] Could not build the scheduler: {e}", file=sys.stderr)
        return 1

    def request_stop(signum, frame):
        logger.info("Signal %d received, stopping simulation", signum)
        sim.stop()

    previous = {sig: signal.signal(sig, request_stop) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        print("=" * 60)
        print("  Four-tier priority scheduler (real-time FCFS + MLFQ)")
        print(f"  {len(sim.tasks)} tasks loaded from {args.task_file}")
        print("=" * 60)
        results = sim.run()
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    if sim.stop_requested:
        print(f"\nSimulation interrupted at tick {sim.current_tick}.")
    print()
    print(format_task_table(sim.tasks))
    print()
    print(format_report(results))

    if args.csv:
        tasks_frame(sim.tasks).to_csv(args.csv, index=False)
        print(f"Task table written to {args.csv}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
