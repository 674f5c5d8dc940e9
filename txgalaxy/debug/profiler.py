from __future__ import annotations

import json
import logging
import math
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

logger = logging.getLogger(__name__)

PASS_PREFIX = "pass."


@dataclass
class _OpenPass:
    kind: str
    started: float
    context: dict[str, Any] = field(default_factory=dict)
    sections_ms: dict[str, float] = field(default_factory=dict)


def percentile(values: list[float], fraction: float) -> float:
    """Nearest-rank percentile; 0.0 for no values."""
    if not values:
        return 0.0
    ordered = sorted(values)
    rank = max(0, min(len(ordered) - 1, math.ceil(len(ordered) * fraction) - 1))
    return ordered[rank]


def summarize(values: list[float]) -> dict[str, float]:
    if not values:
        return {"count": 0.0, "avg_ms": 0.0, "p95_ms": 0.0, "max_ms": 0.0}
    return {
        "count": float(len(values)),
        "avg_ms": sum(values) / len(values),
        "p95_ms": percentile(values, 0.95),
        "max_ms": max(values),
    }


class PassProfiler:
    """Times visibility passes and the named sections that run inside them.

    Pass durations are stored under ``pass.<kind>`` next to the section
    timings. A pass at or above ``slow_pass_ms`` is kept, with its context and
    per-section breakdown, in a bounded list for the report.
    """

    def __init__(
        self,
        enabled: bool = True,
        slow_pass_ms: float = 4.0,
        max_slow_passes: int = 200,
        max_samples: int = 5000,
    ) -> None:
        self.enabled = enabled
        self.slow_pass_ms = slow_pass_ms
        self.max_samples = max_samples
        self.samples_ms: dict[str, deque[float]] = {}
        self.slow_passes: deque[dict[str, Any]] = deque(maxlen=max_slow_passes)
        self._open: _OpenPass | None = None

    def _record(self, name: str, duration_ms: float) -> None:
        samples = self.samples_ms.get(name)
        if samples is None:
            samples = self.samples_ms[name] = deque(maxlen=self.max_samples)
        samples.append(duration_ms)

    @contextmanager
    def measure_pass(self, kind: str) -> Iterator[dict[str, Any]]:
        """Time one pass. Keys the caller puts in the yielded dict describe a slow pass."""
        if not self.enabled:
            yield {}
            return
        outer = self._open
        current = _OpenPass(kind=kind, started=time.perf_counter())
        self._open = current
        try:
            yield current.context
        finally:
            self._open = outer
            self._close(current)

    def _close(self, current: _OpenPass) -> None:
        total_ms = (time.perf_counter() - current.started) * 1000.0
        self._record(PASS_PREFIX + current.kind, total_ms)
        if total_ms < self.slow_pass_ms:
            return
        breakdown = sorted(current.sections_ms.items(), key=lambda item: item[1], reverse=True)
        self.slow_passes.append(
            {
                "kind": current.kind,
                "total_ms": total_ms,
                "context": dict(current.context),
                "sections_ms": dict(breakdown),
            }
        )
        logger.debug("Slow %s pass: %.2f ms", current.kind, total_ms)

    @contextmanager
    def section(self, name: str) -> Iterator[None]:
        if not self.enabled:
            yield
            return
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000.0
            self._record(name, elapsed_ms)
            if self._open is not None:
                sections = self._open.sections_ms
                sections[name] = sections.get(name, 0.0) + elapsed_ms

    def summary(self) -> dict[str, Any]:
        passes: dict[str, dict[str, float]] = {}
        sections: dict[str, dict[str, float]] = {}
        for name, samples in self.samples_ms.items():
            target = passes if name.startswith(PASS_PREFIX) else sections
            target[name] = summarize(list(samples))
        return {
            "slow_pass_threshold_ms": self.slow_pass_ms,
            "passes_ms": passes,
            "sections_ms": sections,
            "slow_passes": list(self.slow_passes),
        }

    def write_report(self, output_dir: str | Path = "profiling") -> tuple[Path, Path] | None:
        if not self.enabled:
            return None
        out_dir = Path(output_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        stamp = time.strftime("%Y%m%d_%H%M%S")
        json_path = out_dir / f"optimizer_report_{stamp}.json"
        txt_path = out_dir / f"optimizer_report_{stamp}.txt"

        report = self.summary()
        report["generated_at"] = time.strftime("%Y-%m-%d %H:%M:%S")
        json_path.write_text(json.dumps(report, indent=2, default=str), encoding="utf-8")
        txt_path.write_text(_render_text(report), encoding="utf-8")
        return txt_path, json_path


def _render_text(report: dict[str, Any]) -> str:
    lines = ["Universe Optimizer Report", f"Generated: {report['generated_at']}", ""]
    for title, key in (("Passes", "passes_ms"), ("Sections", "sections_ms")):
        lines.append(title)
        by_p95 = sorted(report[key].items(), key=lambda item: item[1]["p95_ms"], reverse=True)
        for name, stats in by_p95:
            lines.append(
                f"- {name}: count={int(stats['count'])} avg={stats['avg_ms']:.3f}ms "
                f"p95={stats['p95_ms']:.3f}ms max={stats['max_ms']:.3f}ms"
            )
        lines.append("")
    slow = sorted(report["slow_passes"], key=lambda entry: entry["total_ms"], reverse=True)
    lines.append(f"Slow Passes ({len(slow)})")
    for rank, entry in enumerate(slow[:20], start=1):
        lines.append(f"{rank}. {entry['kind']} total={entry['total_ms']:.2f}ms context={entry['context']}")
    return "\n".join(lines) + "\n"
