from __future__ import annotations

from decimal import Decimal

from sqlalchemy import BigInteger
from sqlalchemy.types import TypeDecorator

from marketplace.core.money import round_half_away, to_decimal


class FixedPoint(TypeDecorator):
    """Decimal stored as a scaled integer (``places=2`` stores cents)."""

    impl = BigInteger
    cache_ok = True

    def __init__(self, places: int = 2):
        super().__init__()
        self.places = places
        self._scale = Decimal(10) ** places

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        scaled = to_decimal(value) * self._scale
        if scaled != scaled.to_integral_value():
            raise ValueError(f"{value} has more than {self.places} decimal places")
        return int(scaled)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return round_half_away(Decimal(int(value)) / self._scale, self.places)
