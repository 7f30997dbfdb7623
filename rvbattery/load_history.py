"""
rvbattery/load_history.py
=========================
Battery Energy Source — Piecewise-Constant Load History

Records the current drawn from a battery as a sequence of constant segments.

Layout:
    loads      = [L0, L1, ..., Ln-1]
    timestamps = [s0, s1, ..., sn]        len(timestamps) == len(loads) + 1

    Segment k holds load L(k) over [s(k), s(k+1)).  The last timestamp is the
    open end of the current segment and moves forward as time advances.

A new segment is appended only when the load actually changes, so the history
grows with the number of load transitions, not with the number of updates.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class LoadSegment:
    """One constant-load interval of the history.

    Attributes:
        load:     Load held over the interval (mA for Li-Ion, A for RV).
        start_s:  Start of the interval [s].
        end_s:    End of the interval [s].
    """
    load:    float
    start_s: float
    end_s:   float


@dataclass
class LoadHistory:
    """Append-only record of load levels and the times they became active.

    Args:
        start_time: Simulated time at which recording begins [s].
    """
    start_time: float = 0.0
    loads:      list[float] = field(default_factory=list)
    timestamps: list[float] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.timestamps:
            self.timestamps.append(self.start_time)
        self.last_sample_time: float = self.timestamps[-1]
        self._previous_load: float | None = self.loads[-1] if self.loads else None

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record(self, load: float, t: float) -> bool:
        """Record that ``load`` is being drawn at time ``t``.

        A changed load closes the open segment at the previous sample time
        and opens a new one ending at ``t``; an unchanged load extends the
        open segment to ``t``.

        Args:
            load: Present load (non-negative).
            t:    Sample time [s]; must not precede the previous sample.

        Returns:
            True if a new segment was appended.

        Raises:
            ValueError: If ``load`` is negative or ``t`` goes back in time.
        """
        if load < 0.0:
            raise ValueError(f"Load must be non-negative; received load={load!r}")
        if t < self.last_sample_time:
            raise ValueError(
                f"Sample time t={t!r} precedes last sample time "
                f"{self.last_sample_time!r}"
            )

        appended = load != self._previous_load
        if appended:
            self.loads.append(load)
            self._previous_load = load
            self.timestamps[-1] = self.last_sample_time
            self.timestamps.append(t)
        else:
            self.timestamps[-1] = t

        self.last_sample_time = t
        return appended

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def current_load(self) -> float | None:
        """Load of the open segment, or None before the first sample."""
        return self._previous_load

    def segments(self) -> list[LoadSegment]:
        """Return the history as explicit :class:`LoadSegment` records."""
        return [
            LoadSegment(load=load, start_s=self.timestamps[k], end_s=self.timestamps[k + 1])
            for k, load in enumerate(self.loads)
        ]

    def __len__(self) -> int:
        return len(self.loads)
