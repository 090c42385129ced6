from __future__ import annotations
from typing import List, Optional, Dict
from db import DailyEntryRepository, ExerciseRepository, SettingsRepository
from algorithms import MathTools


class StatisticsService:
    """Compute weight, calorie and exercise statistics for the dashboard."""

    def __init__(
        self,
        entry_repo: DailyEntryRepository,
        exercise_repo: ExerciseRepository,
        settings_repo: SettingsRepository | None = None,
    ) -> None:
        self.entries = entry_repo
        self.exercises = exercise_repo
        self.settings = settings_repo

    def _entries(
        self, start_date: Optional[str], end_date: Optional[str]
    ) -> list[tuple]:
        return self.entries.fetch_entries(start_date, end_date, descending=False)

    def weight_history(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[Dict[str, float]]:
        """Return ``{"date", "weight"}`` points in kilograms, oldest first."""
        return [
            {"date": date, "weight": float(weight)}
            for _id, date, weight, _cal, _c, _u in self._entries(start_date, end_date)
            if weight is not None
        ]

    def weight_stats(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Dict[str, float]:
        history = self.weight_history(start_date, end_date)
        stats = MathTools.summary(h["weight"] for h in history)
        if not history:
            stats.update({"start": 0.0, "latest": 0.0, "change": 0.0, "change_pct": 0.0})
            return stats
        first = history[0]["weight"]
        last = history[-1]["weight"]
        stats["start"] = round(first, 2)
        stats["latest"] = round(last, 2)
        stats["change"] = round(last - first, 2)
        stats["change_pct"] = MathTools.percent_change(first, last)
        return stats

    def calorie_history(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[Dict[str, float]]:
        return [
            {"date": date, "calories": float(calories)}
            for _id, date, _w, calories, _c, _u in self._entries(start_date, end_date)
            if calories is not None
        ]

    def calorie_stats(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Dict[str, float]:
        values = [h["calories"] for h in self.calorie_history(start_date, end_date)]
        stats = MathTools.summary(values)
        stats["total"] = round(sum(values), 2)
        return stats

    def exercise_types(self) -> List[str]:
        return self.exercises.fetch_types()

    def exercise_progress(
        self,
        exercise_type: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[Dict[str, float]]:
        """Return the first number of each matching exercise's details.

        Exercises whose details carry no number are left out.
        """
        result = []
        for _id, date, ex_type, details, _eid, _c, _u in self.exercises.fetch_range(
            start_date, end_date
        ):
            if ex_type != exercise_type:
                continue
            value = MathTools.first_number(details)
            if value == 0:
                continue
            result.append({"date": date, "value": value, "details": details})
        return result

    def weight_trend(
        self,
        window: Optional[int] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[Dict[str, float]]:
        """Return weights paired with their trailing moving average."""
        if window is None:
            window = (
                self.settings.get_int("smoothing_window", 7) if self.settings else 7
            )
        history = self.weight_history(start_date, end_date)
        averages = MathTools.moving_average([h["weight"] for h in history], window)
        return [
            {"date": h["date"], "weight": h["weight"], "average": avg}
            for h, avg in zip(history, averages)
        ]

    def weight_forecast(
        self,
        days: int = 7,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[Dict[str, float]]:
        history = self.weight_history(start_date, end_date)
        return MathTools.linear_forecast(
            [h["date"] for h in history], [h["weight"] for h in history], days
        )

    def overview(
        self,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Dict[str, float]:
        """Return aggregated statistics for the date range."""
        entries = self._entries(start_date, end_date)
        exercises = self.exercises.fetch_range(start_date, end_date)
        if not entries:
            return {
                "entries": 0,
                "exercises": 0,
                "exercise_types": 0,
                "latest_weight": None,
                "weight_change": 0.0,
                "weekly_weight_change": 0.0,
                "avg_calories": 0.0,
                "total_calories": 0.0,
            }
        weights = self.weight_history(start_date, end_date)
        calories = self.calorie_stats(start_date, end_date)
        weight_change = 0.0
        weekly = 0.0
        if weights:
            weight_change = round(weights[-1]["weight"] - weights[0]["weight"], 2)
            weekly = round(
                MathTools.slope_per_day(
                    [w["date"] for w in weights], [w["weight"] for w in weights]
                )
                * 7,
                2,
            )
        return {
            "entries": len(entries),
            "exercises": len(exercises),
            "exercise_types": len({e[2] for e in exercises}),
            "latest_weight": weights[-1]["weight"] if weights else None,
            "weight_change": weight_change,
            "weekly_weight_change": weekly,
            "avg_calories": calories["avg"],
            "total_calories": calories["total"],
        }
