"""Rich-based console dashboard with a plain-text mode.

:class:`ConsoleDashboard` renders the colony's yards, workers and KPIs as
``rich`` tables.  Passing ``use_rich=False`` switches to simple
``print()``-based output, which is what the tests and log-friendly CI runs
use.
"""

from __future__ import annotations

import sys
from typing import Any

from rich.console import Console
from rich.table import Table

from colony_sim.domain.aggregates import Colony
from colony_sim.domain.enums import WorkerState
from colony_sim.measurement.kpis import KpiReport
from colony_sim.services.thermal import thermal_throttle

# ---------------------------------------------------------------------------
# Sparkline helpers
# ---------------------------------------------------------------------------

_SPARK_CHARS = " " + "▁▂▃▄▅▆▇█"

_STATE_STYLE = {
    WorkerState.IDLE: "dim",
    WorkerState.RUNNING: "green",
    WorkerState.FAULTED: "bold red",
    WorkerState.MAINTENANCE: "cyan",
}


def _sparkline(values: list[float], width: int = 60) -> str:
    """Return a Unicode sparkline for *values*, down-sampled to *width*."""
    if not values:
        return ""

    if len(values) > width:
        bin_size = len(values) / width
        sampled: list[float] = []
        for i in range(width):
            chunk = values[int(i * bin_size):int((i + 1) * bin_size)]
            sampled.append(sum(chunk) / len(chunk) if chunk else 0.0)
        values = sampled

    lo = min(values)
    hi = max(values)
    span = hi - lo if hi != lo else 1.0
    n_chars = len(_SPARK_CHARS) - 1
    return "".join(
        _SPARK_CHARS[max(0, min(n_chars, int(((v - lo) / span) * n_chars)))]
        for v in values
    )


# ---------------------------------------------------------------------------
# ConsoleDashboard
# ---------------------------------------------------------------------------

class ConsoleDashboard:
    """Console presentation layer for colony state and KPI reports.

    Parameters
    ----------
    use_rich:
        Render with ``rich`` tables (default) or plain text.
    file:
        Output stream.  Defaults to ``sys.stdout``.
    """

    def __init__(self, use_rich: bool = True, file: Any = None) -> None:
        self._file = file or sys.stdout
        self._use_rich = use_rich
        self._console = Console(file=self._file) if use_rich else None

    def _plain_print(self, *args: Any) -> None:
        print(*args, file=self._file)

    # -- yards ---------------------------------------------------------------

    def print_yards(self, colony: Colony) -> None:
        res = colony.resource
        rows = []
        for yard in colony.yards:
            throttle = thermal_throttle(
                yard.heat, yard.heat_cap,
                res.thermal_throttle_knee, res.thermal_min_throttle,
            )
            rows.append((
                str(yard.yard_id),
                f"{yard.heat:.1f}/{yard.heat_cap:.0f}",
                f"{throttle:.2f}",
                f"{yard.utilization:.0%}",
                f"{yard.power_draw:.0f}",
                str(len(yard)),
            ))

        headers = ("Yard", "Heat", "Throttle", "Util", "Draw kW", "Workers")
        if self._console is None:
            self._plain_print("  ".join(headers))
            for row in rows:
                self._plain_print("  ".join(row))
            return

        table = Table(title="Workyards", show_lines=False)
        for header in headers:
            table.add_column(header, justify="right" if header != "Yard" else "left")
        for row in rows:
            table.add_row(*row)
        self._console.print(table)

    # -- workers -------------------------------------------------------------

    def print_workers(self, colony: Colony) -> None:
        headers = ("Worker", "Yard", "State", "Job", "Corruption", "Sticky")
        rows = [
            (
                str(w.worker_id),
                str(y.yard_id),
                w.state,
                "-" if w.job_id is None else str(w.job_id),
                f"{w.corruption:.3f}",
                str(w.sticky_faults),
            )
            for y, w in colony.iter_workers()
        ]

        if self._console is None:
            self._plain_print("  ".join(headers))
            for worker_id, yard_id, state, job, corr, sticky in rows:
                self._plain_print("  ".join((worker_id, yard_id, state.value, job, corr, sticky)))
            return

        table = Table(title="Workers")
        for header in headers:
            table.add_column(header)
        for worker_id, yard_id, state, job, corr, sticky in rows:
            table.add_row(
                worker_id, yard_id, f"[{_STATE_STYLE[state]}]{state.value}[/]",
                job, corr, sticky,
            )
        self._console.print(table)

    # -- KPIs ----------------------------------------------------------------

    def print_kpis(self, report: KpiReport) -> None:
        rows = [
            ("Ticks", str(report.ticks)),
            ("Completed", str(report.completed)),
            ("Deadline hit rate", f"{report.deadline_hit_rate:.1%}"),
            ("Abandoned", str(report.abandoned)),
            ("Soft drop rate", f"{report.soft_drop_rate:.2%}"),
            ("Retries", str(report.retries)),
            ("Faults", str(report.faults_total)),
            ("Sticky quarantines", str(report.sticky_quarantines)),
            ("Maintenance runs", str(report.maintenance_completed)),
            ("Mean corruption", f"{report.mean_corruption:.4f}"),
            ("Peak corruption", f"{report.peak_corruption:.4f}"),
            ("Mean bandwidth", f"{report.mean_bandwidth_util:.1%}"),
        ]
        for kind, count in sorted(report.faults_by_kind.items()):
            rows.append((f"  {kind}", str(count)))

        if self._console is None:
            self._plain_print("KPIs")
            for name, value in rows:
                self._plain_print(f"  {name:<20} {value}")
            return

        table = Table(title="Fleet KPIs")
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right")
        for name, value in rows:
            table.add_row(name, value)
        self._console.print(table)

    def print_trajectory(self, values: list[float], label: str = "corruption") -> None:
        """Print a sparkline of a per-tick series."""
        if not values:
            return
        line = f"{label}: {_sparkline(values)}  [{min(values):.4f} .. {max(values):.4f}]"
        if self._console is None:
            self._plain_print(line)
        else:
            self._console.print(line)
