"""Console rendering of playtime totals."""

from __future__ import annotations

from pathlib import Path
from typing import Mapping

from .errors import NoHistoryError
from .ledger import Ledger
from .normalization import normalize_key

NANOSECONDS_PER_SECOND = 1_000_000_000


class TotalsPrinter:
    """Render the playtime of one identity in the console."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)

    def print_totals(self, identity: str) -> bool:
        """Print totals; returns ``False`` if ``identity`` never played."""
        identity = normalize_key(identity, kind="identity")
        with Ledger.open(self.db_path, create=False) as ledger:
            try:
                totals = ledger.query(identity)
            except NoHistoryError:
                print(f"Seems {identity} played nothing so far :(")
                return False

        if not totals:
            print(f"{identity} has no recorded playtime.")
            return True

        print(f"As far as I'm aware, {identity} played:")
        print("-" * 40)
        for activity, nanoseconds in sort_totals(totals):
            print(f"  {activity[:28]:<28} {format_duration(nanoseconds)}")
        print("-" * 40)
        print(f"  {'Total':<28} {format_duration(sum(totals.values()))}")
        return True


def sort_totals(totals: Mapping[str, int]) -> list[tuple[str, int]]:
    return sorted(totals.items(), key=lambda item: (-item[1], item[0]))


def format_duration(nanoseconds: int) -> str:
    """Format nanoseconds as ``HH:MM:SS``; hours are not wrapped at 24."""
    total_seconds = nanoseconds // NANOSECONDS_PER_SECOND
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
