"""
cw_simulate.runtime.gasmeter — deterministic gas metering with OOG semantics.

A small GasMeter used by execution backends to charge host operations
(store access, address codec, query bytes):

- Gas is charged *before* the operation takes effect.
- If the meter would exceed its limit, ``OutOfGas`` is raised and the meter
  is left untouched.
- ``set_remaining(...)`` rebases the meter so that exactly that much gas is
  left; contract instances use it to apply a per-call gas limit and to hand
  the unused part of the budget back afterwards.
"""
from __future__ import annotations

from ..errors import OutOfGas, SimError


class GasMeter:
    """
    Deterministic gas meter.

    Typical usage:
        gm = GasMeter(limit=200_000)
        gm.consume(3)
        gm.remaining  # 199_997

    Notes:
    - All values are Python ints; negative or non-int inputs raise.
    - ``used`` is monotonically non-decreasing.
    - ``remaining`` never goes below zero; OutOfGas is raised before that.
    """

    __slots__ = ("_limit", "_used")

    def __init__(self, *, limit: int) -> None:
        self._limit = self._require_int_ge(limit, 0, "limit")
        self._used = 0

    # -------------------------- properties -------------------------- #

    @property
    def limit(self) -> int:
        """Configured hard limit."""
        return self._limit

    @property
    def used(self) -> int:
        """Total gas consumed so far."""
        return self._used

    @property
    def remaining(self) -> int:
        """Gas remaining before hitting the hard limit (>= 0)."""
        return self._limit - self._used

    # --------------------------- actions ---------------------------- #

    def consume(self, amount: int) -> None:
        """Charge `amount` gas; raise OutOfGas if this would exceed the limit."""
        amt = self._require_int_ge(amount, 0, "consume amount")
        new_used = self._used + amt
        if new_used > self._limit:
            raise OutOfGas(
                f"out of gas: need {amt} (used {self._used}, limit {self._limit})",
                data={"need": amt, "used": self._used, "limit": self._limit},
            )
        self._used = new_used

    def ensure(self, amount: int) -> None:
        """Raise OutOfGas if `amount` exceeds the remaining gas, without charging."""
        amt = self._require_int_ge(amount, 0, "ensure amount")
        if amt > self.remaining:
            raise OutOfGas(
                f"out of gas: need {amt} (remaining {self.remaining})",
                data={"need": amt, "remaining": self.remaining},
            )

    def set_remaining(self, remaining: int) -> None:
        """Reset the meter so that exactly `remaining` gas is left."""
        rem = self._require_int_ge(remaining, 0, "remaining")
        self._limit = self._used + rem

    # --------------------------- helpers ---------------------------- #

    @staticmethod
    def _require_int_ge(v: int, lb: int, name: str) -> int:
        if not isinstance(v, int) or isinstance(v, bool):
            raise SimError(f"{name} must be int, got {type(v).__name__}")
        if v < lb:
            raise SimError(f"{name} must be >= {lb}, got {v}")
        return v

    def __repr__(self) -> str:  # pragma: no cover
        return f"GasMeter(limit={self._limit}, used={self._used})"


__all__ = ["GasMeter"]
