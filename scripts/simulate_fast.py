"""Simulate a month of fasting sessions and print progress, streaks and statistics.

Runs the pure engine only (no database).  Useful to eyeball how pauses
shift progress and how breaks reset the current streak.

Usage:
    python scripts/simulate_fast.py
"""

import datetime
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from app.fasting.state_machine import end, new_session, pause, resume, start
from app.fasting.statistics import compute_statistics
from app.fasting.time_accounting import progress_fraction
from app.schemas.fasting_session import FastingEndReason, FastingType

H = datetime.timedelta(hours=1)

# ─── (day, protocol, pauses as (start_h, length_h), end_h, reason) ────
PLAN = [
    (1, FastingType.INTERMITTENT_16_8, [], 16, FastingEndReason.COMPLETED),
    (2, FastingType.INTERMITTENT_16_8, [(3, 1)], 17, FastingEndReason.COMPLETED),
    (3, FastingType.INTERMITTENT_18_6, [], 10, FastingEndReason.USER_BREAK),
    (4, FastingType.INTERMITTENT_16_8, [], 16, FastingEndReason.COMPLETED),
    (5, FastingType.INTERMITTENT_20_4, [(5, 2)], 22, FastingEndReason.COMPLETED),
    (6, FastingType.OMAD, [], 23, FastingEndReason.COMPLETED),
    (8, FastingType.EXTENDED_24, [(10, 1), (15, 1)], 8, FastingEndReason.EMERGENCY_BREAK),
    (10, FastingType.EXTENDED_36, [], 36, FastingEndReason.COMPLETED),
]


def main():
    origin = datetime.datetime(2026, 9, 1, 20, 0, tzinfo=datetime.timezone.utc)
    history = []

    print(f"{'day':<5}{'type':<18}{'50% at':>8}{'end':>8}{'state':>11}{'done %':>9}{'streak':>8}{'best':>6}"
          f"{'PB':>5}")
    print("-" * 78)

    for day, fasting_type, pauses, end_h, reason in PLAN:
        t0 = origin + datetime.timedelta(days=day)
        record = new_session(f"sim-{day}", "simulated-user", fasting_type, created_at=t0)
        record = start(record, t0)
        for pause_h, length_h in pauses:
            if pause_h >= end_h:
                continue
            record = pause(record, t0 + pause_h * H)
            record = resume(record, t0 + (pause_h + length_h) * H)

        # Hour at which the session crosses 50% (hourly poll)
        half_at = next((h for h in range(0, end_h + 1) if progress_fraction(record, t0 + h * H) >= 0.5), None)

        finished = end(record, reason, t0 + end_h * H, history=history)
        history.append(finished)

        half = f"{half_at}h" if half_at is not None else "--"
        print(f"{day:<5}{fasting_type.value:<18}{half:>8}{end_h:>7}h{finished.state.value:>11}"
              f"{finished.completion_percentage:>9.1f}{finished.current_streak:>8}{finished.longest_streak:>6}"
              f"{'*' if finished.is_personal_best else '':>5}")

    # ── Summary ─────────────────────────────────────────────────────
    stats = compute_statistics(history)
    print()
    print("=" * 60)
    print("SUMMARY")
    print("=" * 60)
    print(f"Sessions: {stats.total_sessions} ({stats.completed_sessions} completed, "
          f"{stats.success_rate:.0%} success)")
    print(f"Total fasting: {stats.total_fasting_time.total_seconds() / 3600:.1f}h")
    print(f"Average completed: {stats.average_completed_duration.total_seconds() / 3600:.1f}h")
    print(f"Longest: {stats.longest_duration.total_seconds() / 3600:.1f}h")
    print(f"Current streak: {stats.current_streak}, longest streak: {stats.longest_streak}")


if __name__ == "__main__":
    main()
