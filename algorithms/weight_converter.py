from typing import Optional


class WeightConverter:
    """Utility for converting body weight between kg and lb."""

    KG_TO_LB = 2.20462
    UNITS = ("kg", "lb")

    @staticmethod
    def kg_to_lb(kg: float) -> float:
        return round(kg * WeightConverter.KG_TO_LB, 2)

    @staticmethod
    def lb_to_kg(lb: float) -> float:
        return round(lb / WeightConverter.KG_TO_LB, 2)

    @classmethod
    def to_display(cls, kg: Optional[float], unit: str) -> Optional[float]:
        """Return stored kilograms in ``unit``; ``None`` passes through."""
        if kg is None:
            return None
        if unit not in cls.UNITS:
            raise ValueError(f"unknown unit: {unit}")
        return cls.kg_to_lb(kg) if unit == "lb" else round(float(kg), 2)

    @classmethod
    def to_storage(cls, value: Optional[float], unit: str) -> Optional[float]:
        """Return ``value`` entered in ``unit`` as kilograms.

        The result is not rounded so that converting back with
        :meth:`to_display` gives the entered value again.
        """
        if value is None:
            return None
        if unit not in cls.UNITS:
            raise ValueError(f"unknown unit: {unit}")
        if unit == "lb":
            return float(value) / cls.KG_TO_LB
        return float(value)
