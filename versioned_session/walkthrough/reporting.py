"""Human-readable output for the walkthrough."""

import sys
from typing import Any, Dict, Iterable, List, Optional, TextIO

import pandas as pd

from ..core.types import CommitHash, CommitRecord, DiffEntry, MergeResult, StatusEntry


def diff_frame(entries: List[DiffEntry]) -> pd.DataFrame:
    """One row per change with from_ and to_ columns side by side."""
    records = []
    for entry in entries:
        record: Dict[str, Any] = {"diff_type": entry.diff_type.value}
        record.update({f"from_{k}": v for k, v in entry.from_values.items()})
        record.update({f"to_{k}": v for k, v in entry.to_values.items()})
        record["from_commit"] = entry.from_commit
        record["to_commit"] = entry.to_commit
        records.append(record)
    return pd.DataFrame.from_records(records)


class Reporter:
    """Writes summaries of session results to a text stream."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or sys.stdout

    def line(self, *parts: Any) -> None:
        print(*parts, file=self.stream)

    def active_branch(self, name: str) -> None:
        self.line("Active branch:", name)

    def tables(self, names: Iterable[str]) -> None:
        self.line("Tables in database:", ", ".join(names))

    def commit(self, commit_hash: CommitHash) -> None:
        self.line("Created commit:", commit_hash)

    def commit_log(self, records: Iterable[CommitRecord]) -> None:
        self.line("Commit log:")
        for record in records:
            self.line(str(record))

    def status(self, entries: List[StatusEntry]) -> None:
        self.line("Status:")
        if not entries:
            self.line("No tables modified")
            return
        for entry in entries:
            self.line(str(entry))

    def diff(self, table: str, entries: List[DiffEntry]) -> None:
        self.line(f"Diff for {table}:")
        if not entries:
            self.line("No changes")
            return
        self.line(diff_frame(entries).to_string(index=False))

    def summary(self, rows: List[Dict[str, Any]]) -> None:
        for row in rows:
            start_date = row.get("start_date") or ""
            self.line(f"{row['team_name']}: {row['first_name']} {row['last_name']} {start_date}".rstrip())

    def merge(self, branch: str, result: MergeResult) -> None:
        self.line("Merge complete for", branch)
        self.line(
            "Commit:", result.commit_hash,
            "Fast forward:", result.fast_forward,
            "Conflicts:", result.conflict_count
        )
