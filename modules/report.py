# -*- coding: utf-8 -*-
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)

MAX_LISTED_FAILURES = 20


class Outcome(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class EntryResult:
    """
    Result of processing one share entry. Doubles as the structured event
    reported for the entry: level, entry path, outcome and detail.
    """
    entry_path: str
    outcome: Outcome
    detail: str = ""
    error_kind: Optional[str] = None
    warnings: Tuple[str, ...] = ()
    target: Optional[str] = None

    @classmethod
    def success(cls, entry_path: str, detail: str = "", target: Optional[str] = None) -> "EntryResult":
        return cls(entry_path, Outcome.SUCCESS, detail, target=target)

    @classmethod
    def skipped(cls, entry_path: str, detail: str) -> "EntryResult":
        return cls(entry_path, Outcome.SKIPPED, detail)

    @classmethod
    def failed(cls, entry_path: str, error, context: str = "") -> "EntryResult":
        detail = f"{context}: {error}" if context else str(error)
        return cls(entry_path, Outcome.FAILED, detail, error_kind=getattr(error, "kind", "unexpected"))

    def with_warning(self, message: str) -> "EntryResult":
        return EntryResult(
            self.entry_path, self.outcome, self.detail, self.error_kind, self.warnings + (message,), self.target
        )

    @property
    def level(self) -> int:
        if self.outcome is Outcome.FAILED:
            return logging.ERROR
        if self.warnings:
            return logging.WARNING
        return logging.INFO

    def as_event(self) -> dict:
        return {
            "level": logging.getLevelName(self.level),
            "entryPath": self.entry_path,
            "outcome": self.outcome.value,
            "detail": "; ".join(filter(None, (self.detail,) + self.warnings)),
        }


@dataclass
class BatchReport:
    name: str
    results: List[EntryResult] = field(default_factory=list)

    def record(self, result: EntryResult) -> EntryResult:
        self.results.append(result)
        event = result.as_event()
        logger.log(result.level, f"[{event['outcome']}] {event['entryPath']}: {event['detail']}")
        return result

    def _count(self, outcome: Outcome) -> int:
        return sum(1 for r in self.results if r.outcome is outcome)

    @property
    def visited(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return self._count(Outcome.SUCCESS)

    @property
    def skipped(self) -> int:
        return self._count(Outcome.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(Outcome.FAILED)

    @property
    def warnings(self) -> List[Tuple[str, str]]:
        return [(r.entry_path, w) for r in self.results for w in r.warnings]

    def failures(self) -> List[EntryResult]:
        return [r for r in self.results if r.outcome is Outcome.FAILED]


def print_summary(report: BatchReport):
    """Prints a summary of the batch results to the console."""
    print(f"\n\n--- {report.name} Summary ---")
    print(f"Entries visited: {report.visited}")
    print(f"Succeeded: {report.succeeded}")
    print(f"Skipped: {report.skipped}")
    print(f"Failed: {report.failed}")

    failures = report.failures()
    if failures:
        print("\n[Entries with Errors]")
        for result in failures[:MAX_LISTED_FAILURES]:
            print(f"  - '{result.entry_path}' ({result.error_kind}): {result.detail}")
        if len(failures) > MAX_LISTED_FAILURES:
            print(f"  ... and {len(failures) - MAX_LISTED_FAILURES} more error(s). Check logs for full details.")

    if report.warnings:
        print("\n[Warnings]")
        for entry_path, message in report.warnings[:MAX_LISTED_FAILURES]:
            print(f"  - '{entry_path}': {message}")

    print("\n--- All tasks completed ---")
