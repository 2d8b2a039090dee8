"""
Run report — the per-run context that collects lineage outcomes.

One RunReport is created per run and handed to every stage that needs to
record something, instead of module-level state. It derives the overall
error flag and exit status, and renders the LINEAGE / RESULT / REASON
table printed at the end of a run.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ocsp_stapler.domain.models import Outcome, ProcessingResult

HEADER = ("LINEAGE", "RESULT", "REASON")
# Leading marker column: "+" updated, "!" failed to update.
ROW_MARKERS = {"updated": "+", "failed to update": "!"}
EXIT_SUCCESS = 0
EXIT_FAILURE = 1


@dataclass
class RunReport:
    """Mutable aggregate of one run: lineage name → ProcessingResult, plus reload outcome."""

    results: dict[str, ProcessingResult] = field(default_factory=dict)
    reloaded: bool = False
    reload_error: str | None = None

    def record(self, lineage_name: str, result: ProcessingResult) -> None:
        self.results[lineage_name] = result

    def names_with(self, outcome: Outcome) -> list[str]:
        return sorted(name for name, result in self.results.items() if result.outcome is outcome)

    @property
    def any_updated(self) -> bool:
        return any(result.outcome is Outcome.UPDATED for result in self.results.values())

    @property
    def has_errors(self) -> bool:
        """True if any lineage failed or the webserver reload failed."""
        return self.reload_error is not None or any(
            result.is_failure for result in self.results.values()
        )

    @property
    def exit_code(self) -> int:
        return EXIT_FAILURE if self.has_errors else EXIT_SUCCESS

    def rows(self) -> list[tuple[str, str, str]]:
        """Report rows sorted by lineage name."""
        return [
            (name, result.outcome.value, result.reason)
            for name, result in sorted(self.results.items())
        ]

    def render(self) -> str:
        """
        Plain-text table, columns padded to the widest cell.

        Updated rows are marked "+" and failed rows "!" in a leading
        column. Empty when no lineage was processed. A failed reload is
        appended as its own line below the table.
        """
        rows = self.rows()
        if not rows:
            return ""
        widths = [max(len(row[i]) for row in (HEADER, *rows)) for i in range(2)]
        lines = [
            f"{ROW_MARKERS.get(outcome, ' ')} "
            f"{name.ljust(widths[0])}  {outcome.ljust(widths[1])}  {reason}".rstrip()
            for name, outcome, reason in (HEADER, *rows)
        ]
        if self.reload_error is not None:
            lines.append("")
            lines.append(f"webserver reload failed: {self.reload_error}")
        return "\n".join(lines)
