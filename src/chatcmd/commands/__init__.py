"""Sample commands shipped with the package."""

from .calculator import CALCULATOR, calculator

__all__ = ["CALCULATOR", "calculator"]
