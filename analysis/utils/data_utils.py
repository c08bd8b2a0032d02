"""
Utility functions for numeric guards used across aggregation and projection.
"""
import math
from typing import Optional


class DataUtils:
    """Helper class providing safe arithmetic for sparse box score data."""

    @staticmethod
    def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
        """
        Safely divide two numbers, returning default if denominator is 0 or None.

        Args:
            numerator: Number to divide
            denominator: Number to divide by
            default: Value to return if division fails (default: 0.0)

        Returns:
            Result of division or default
        """
        try:
            if denominator is None or denominator == 0:
                return default
            return numerator / denominator
        except (TypeError, ZeroDivisionError):
            return default

    @staticmethod
    def clamp(value: float, lower: float, upper: float) -> float:
        """Bound value to the closed interval [lower, upper]."""
        return max(lower, min(upper, value))

    @staticmethod
    def round_to(value: Optional[float], digits: int) -> Optional[float]:
        """
        Round a possibly-missing number, mapping NaN to None.

        Returns plain Python floats so results serialize cleanly to JSON.
        """
        if value is None:
            return None
        value = float(value)
        if math.isnan(value):
            return None
        return round(value, digits)
