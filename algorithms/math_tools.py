import re
import datetime
from typing import Iterable, List, Optional, Sequence
import numpy as np

_NUMBER_RE = re.compile(r"\d+")


class MathTools:
    """Provides small numeric helpers for tracking body weight and exercise."""

    @staticmethod
    def clamp(value: float, min_value: float, max_value: float) -> float:
        """Clamp ``value`` to the inclusive range [min_value, max_value]."""
        if min_value > max_value:
            raise ValueError("min_value must not exceed max_value")
        return max(min_value, min(value, max_value))

    @staticmethod
    def first_number(text: Optional[str]) -> int:
        """Return the first integer in ``text`` or 0 when none is present.

        "3 sets of 10" yields 3, "5km in 30 mins" yields 5.
        """
        if not text:
            return 0
        match = _NUMBER_RE.search(text)
        return int(match.group(0)) if match else 0

    @staticmethod
    def moving_average(values: Sequence[float], window: int) -> List[float]:
        """Return the trailing moving average of ``values``.

        The first ``window - 1`` points average over the values seen so far
        so the result has the same length as the input.
        """
        if window < 1:
            raise ValueError("window must be positive")
        result: list[float] = []
        total = 0.0
        for idx, value in enumerate(values):
            total += float(value)
            if idx >= window:
                total -= float(values[idx - window])
            count = min(idx + 1, window)
            result.append(round(total / count, 2))
        return result

    @staticmethod
    def linear_forecast(
        dates: Sequence[str], values: Sequence[float], days: int
    ) -> List[dict]:
        """Project ``values`` ``days`` ahead with a least-squares line.

        ``dates`` are ISO strings. Returns ``{"date", "value"}`` dicts for each
        day after the last observation, or an empty list with fewer than two
        distinct dates.
        """
        if days < 1 or len(dates) != len(values):
            return []
        ordinals = [datetime.date.fromisoformat(d).toordinal() for d in dates]
        if len(set(ordinals)) < 2:
            return []
        x = np.array(ordinals, dtype=float)
        y = np.array(values, dtype=float)
        slope, intercept = np.polyfit(x, y, 1)
        last = max(ordinals)
        forecast = []
        for step in range(1, days + 1):
            day = last + step
            forecast.append(
                {
                    "date": datetime.date.fromordinal(day).isoformat(),
                    "value": round(float(slope * day + intercept), 2),
                }
            )
        return forecast

    @staticmethod
    def slope_per_day(dates: Sequence[str], values: Sequence[float]) -> float:
        """Return the least-squares slope of ``values`` per calendar day."""
        ordinals = [datetime.date.fromisoformat(d).toordinal() for d in dates]
        if len(set(ordinals)) < 2:
            return 0.0
        slope, _ = np.polyfit(
            np.array(ordinals, dtype=float), np.array(values, dtype=float), 1
        )
        return float(slope)

    @staticmethod
    def percent_change(start: float, end: float) -> float:
        """Return the relative change from ``start`` to ``end`` in percent."""
        if start == 0:
            raise ValueError("start must not be zero")
        return round((end - start) / start * 100.0, 2)

    @staticmethod
    def summary(values: Iterable[float]) -> dict:
        """Return count, average, min and max of ``values``."""
        data = [float(v) for v in values]
        if not data:
            return {"count": 0, "avg": 0.0, "min": 0.0, "max": 0.0}
        arr = np.array(data, dtype=float)
        return {
            "count": len(data),
            "avg": round(float(np.mean(arr)), 2),
            "min": round(float(np.min(arr)), 2),
            "max": round(float(np.max(arr)), 2),
        }
