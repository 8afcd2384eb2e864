from typing import Dict, List

import numpy as np
import pandas as pd

TASK_COLUMNS = ["ID", "Type", "Arrival", "Burst", "Start", "Completion",
                "Turnaround", "Waiting", "Response", "State", "Timed Out"]


def compute_statistics(tasks, elapsed_ticks, context_switches) -> Dict:
    """Aggregate a finished run. Reads the task table, never mutates it."""
    completed = [t for t in tasks if t.completed_normally]
    timed_out = [t for t in tasks if t.timed_out]

    turnarounds = [t.turnaround_time for t in completed]
    waits = [t.waiting_time for t in completed]
    responses = [t.response_time for t in completed if t.response_time is not None]
    total_burst = sum(t.burst_time for t in completed)

    return {
        "elapsed_ticks": elapsed_ticks,
        "total_tasks": len(tasks),
        "completed": len(completed),
        "timed_out": len(timed_out),
        "unfinished": len(tasks) - len(completed) - len(timed_out),
        "realtime_completed": sum(1 for t in completed if t.is_realtime),
        "user_completed": sum(1 for t in completed if not t.is_realtime),
        "realtime_timed_out": sum(1 for t in timed_out if t.is_realtime),
        "user_timed_out": sum(1 for t in timed_out if not t.is_realtime),
        "context_switches": context_switches,
        "avg_turnaround": float(np.mean(turnarounds)) if turnarounds else 0.0,
        "avg_waiting": float(np.mean(waits)) if waits else 0.0,
        "avg_response": float(np.mean(responses)) if responses else 0.0,
        "cpu_utilization": total_burst / elapsed_ticks if elapsed_ticks > 0 else 0.0,
        "throughput": len(completed) / elapsed_ticks if elapsed_ticks > 0 else 0.0,
    }


def task_rows(tasks) -> List[Dict]:
    rows = []
    for t in tasks:
        rows.append({
            "ID": t.task_id,
            "Type": t.task_type.value,
            "Arrival": t.arrival_time,
            "Burst": t.burst_time,
            "Start": t.start_time,
            "Completion": t.completion_time,
            "Turnaround": t.turnaround_time,
            "Waiting": t.waiting_time,
            "Response": t.response_time,
            "State": t.state.value,
            "Timed Out": t.timed_out,
        })
    return rows


def tasks_frame(tasks) -> pd.DataFrame:
    return pd.DataFrame(task_rows(tasks), columns=TASK_COLUMNS)


def format_task_table(tasks) -> str:
    header = (f"{'ID':<6} {'TYPE':<10} {'ARRIVAL':<8} {'BURST':<6} {'START':<6} "
              f"{'END':<6} {'WAITING':<8} {'STATE':<11}")
    lines = [header, "-" * len(header)]
    for row in task_rows(tasks):
        waiting = row["Waiting"] if row["Waiting"] is not None else "-"
        state = "timed-out" if row["Timed Out"] else row["State"]
        lines.append(f"{row['ID']:<6} {row['Type']:<10} {row['Arrival']:<8} {row['Burst']:<6} "
                     f"{row['Start']:<6} {row['Completion']:<6} {waiting:<8} {state:<11}")
    return "\n".join(lines)


def format_report(stats) -> str:
    lines = [
        "SIMULATION STATISTICS",
        "-" * 60,
        f"  Elapsed ticks        : {stats['elapsed_ticks']}",
        f"  Total tasks          : {stats['total_tasks']}",
        f"  Completed            : {stats['completed']}"
        f" (real-time {stats['realtime_completed']}, user {stats['user_completed']})",
        f"  Timed out            : {stats['timed_out']}"
        f" (real-time {stats['realtime_timed_out']}, user {stats['user_timed_out']})",
        f"  Unfinished           : {stats['unfinished']}",
        f"  Context switches     : {stats['context_switches']}",
    ]
    if stats["completed"]:
        lines += [
            f"  Avg turnaround       : {stats['avg_turnaround']:.2f}",
            f"  Avg waiting          : {stats['avg_waiting']:.2f}",
            f"  Avg response         : {stats['avg_response']:.2f}",
            f"  CPU utilization      : {stats['cpu_utilization']:.1%}",
            f"  Throughput           : {stats['throughput']:.2f} tasks/tick",
        ]
    lines.append("-" * 60)
    return "\n".join(lines)
