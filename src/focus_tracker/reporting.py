"""Console summaries of recorded sessions."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from .stores import Database, SessionStore


class SummaryPrinter:
    """Render human-readable summaries in the console."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)

    def print_daily_summary(self, day: datetime, *, top: int = 10) -> None:
        database = Database.open(self.db_path)
        try:
            store = SessionStore(database)
            totals = store.summary_for_day(day)
            unclassified = store.unclassified()
        finally:
            database.close()

        print(f"Summary for {day.strftime('%Y-%m-%d')}")
        print("-" * 40)
        if totals:
            for item in totals:
                print(f"  {item.user_defined_name:<30} {format_duration(item.total_duration_seconds)}")
            total = sum(item.total_duration_seconds for item in totals)
            print(f"  {'Total classified':<30} {format_duration(total)}")
        else:
            print("No classified activity recorded for the selected day.")

        if unclassified:
            print()
            print("Awaiting classification:")
            for item in unclassified[:top]:
                label = item.window_title or "(untitled)"
                print(
                    f"  {item.app_name[:12]:<12} {label[:45]:<45} "
                    f"{format_duration(item.total_duration_seconds)}"
                )


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
