from __future__ import annotations

from bisect import bisect_left, bisect_right
from typing import Iterable, Literal

import numpy as np

Interpolation = Literal["linear", "hermite"]


def _quadratic_slope(ts: tuple[float, float, float], ps: tuple[np.ndarray, np.ndarray, np.ndarray], x: float) -> np.ndarray:
    """Derivative at `x` of the parabola through three (t, p) samples."""
    t0, t1, t2 = ts
    p0, p1, p2 = ps
    d0 = ((x - t1) + (x - t2)) / ((t0 - t1) * (t0 - t2))
    d1 = ((x - t0) + (x - t2)) / ((t1 - t0) * (t1 - t2))
    d2 = ((x - t0) + (x - t1)) / ((t2 - t0) * (t2 - t1))
    return d0 * p0 + d1 * p1 + d2 * p2


class SampledPositionCurve:
    """Time-indexed position function built from discrete samples.

    Samples are kept sorted by timestamp; inserting an existing timestamp
    overwrites it. Evaluation clamps to the first/last sample outside the
    sampled range.

    `"hermite"` evaluates a cubic Hermite segment between the two bracketing
    samples. Each sample's tangent is the slope of the degree-2 fit through it
    and its neighbours, so velocity is continuous across interior samples.
    """

    def __init__(self, interpolation: Interpolation = "linear") -> None:
        if interpolation not in ("linear", "hermite"):
            raise ValueError(f"Unsupported interpolation: {interpolation!r}")
        self.interpolation: Interpolation = interpolation
        self._times: list[float] = []
        self._positions: list[np.ndarray] = []
        self._tangents: list[np.ndarray] | None = None

    @classmethod
    def from_samples(
        cls,
        samples: Iterable[tuple[float, np.ndarray | tuple[float, float, float]]],
        interpolation: Interpolation = "linear",
    ) -> "SampledPositionCurve":
        curve = cls(interpolation)
        for ts, pos in samples:
            curve.add_sample(ts, pos)
        return curve

    def __len__(self) -> int:
        return len(self._times)

    @property
    def times(self) -> list[float]:
        return list(self._times)

    def samples(self) -> list[tuple[float, np.ndarray]]:
        return [(t, p.copy()) for t, p in zip(self._times, self._positions)]

    def bounds(self) -> tuple[float, float] | None:
        if not self._times:
            return None
        return self._times[0], self._times[-1]

    def add_sample(self, timestamp: float, position: np.ndarray | tuple[float, float, float] | list[float]) -> None:
        ts = float(timestamp)
        if not np.isfinite(ts):
            raise ValueError("timestamp must be finite")
        pos = np.asarray(position, dtype=np.float64).reshape(3).copy()
        if not np.all(np.isfinite(pos)):
            raise ValueError("position must contain finite values")

        idx = bisect_left(self._times, ts)
        if idx < len(self._times) and self._times[idx] == ts:
            self._positions[idx] = pos
        else:
            self._times.insert(idx, ts)
            self._positions.insert(idx, pos)
        self._tangents = None

    def _compute_tangents(self) -> list[np.ndarray]:
        n = len(self._times)
        ts = self._times
        ps = self._positions
        if n == 1:
            return [np.zeros(3, dtype=np.float64)]
        if n == 2:
            slope = (ps[1] - ps[0]) / (ts[1] - ts[0])
            return [slope, slope.copy()]

        out: list[np.ndarray] = []
        for i in range(n):
            j = min(max(i - 1, 0), n - 3)
            out.append(
                _quadratic_slope(
                    (ts[j], ts[j + 1], ts[j + 2]),
                    (ps[j], ps[j + 1], ps[j + 2]),
                    ts[i],
                )
            )
        return out

    def evaluate(self, timestamp: float) -> np.ndarray:
        if not self._times:
            raise ValueError("Cannot evaluate a curve with no samples")

        t = float(timestamp)
        if not np.isfinite(t):
            raise ValueError("timestamp must be finite")

        if len(self._times) == 1 or t <= self._times[0]:
            return self._positions[0].copy()
        if t >= self._times[-1]:
            return self._positions[-1].copy()

        i = bisect_right(self._times, t) - 1
        t0, t1 = self._times[i], self._times[i + 1]
        p0, p1 = self._positions[i], self._positions[i + 1]
        h = t1 - t0
        s = (t - t0) / h

        if self.interpolation == "linear":
            return p0 + (p1 - p0) * s

        if self._tangents is None:
            self._tangents = self._compute_tangents()
        m0 = self._tangents[i]
        m1 = self._tangents[i + 1]

        s2 = s * s
        s3 = s2 * s
        h00 = 2.0 * s3 - 3.0 * s2 + 1.0
        h10 = s3 - 2.0 * s2 + s
        h01 = -2.0 * s3 + 3.0 * s2
        h11 = s3 - s2
        return h00 * p0 + h10 * h * m0 + h01 * p1 + h11 * h * m1

    def first_position(self) -> np.ndarray:
        if not self._positions:
            raise ValueError("Curve has no samples")
        return self._positions[0].copy()
