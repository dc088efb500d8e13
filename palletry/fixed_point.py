"""Three multiplicative accumulators built on fixed-point arithmetic.

One accumulator uses ``Permill`` (parts per million, always within [0, 1]),
one uses ``U16F16`` (16 integer bits and 16 fractional bits), and one keeps
the same 16.16 layout by hand in a plain unsigned 32-bit integer.
"""

from __future__ import annotations

from dataclasses import dataclass
from fractions import Fraction
from numbers import Rational

from palletry.runtime import DispatchError, Origin, System, ensure_signed

_U32_MAX = 0xFFFF_FFFF
_FRAC_BITS = 16


class Overflow(DispatchError):
    """The product does not fit in the accumulator's representation."""


@dataclass(frozen=True, order=True)
class Permill:
    """A fraction in [0, 1] stored as parts per million."""

    parts: int

    ACCURACY = 1_000_000

    def __post_init__(self) -> None:
        if not 0 <= self.parts <= self.ACCURACY:
            raise ValueError(f"Permill parts must be within 0..{self.ACCURACY}")

    @classmethod
    def from_percent(cls, percent: int) -> "Permill":
        """Build from a whole percentage; values above 100 saturate at one."""
        if percent < 0:
            raise ValueError("percent must not be negative")
        return cls(min(percent, 100) * (cls.ACCURACY // 100))

    @classmethod
    def one(cls) -> "Permill":
        return cls(cls.ACCURACY)

    def saturating_mul(self, other: "Permill") -> "Permill":
        """Multiply, rounding down; the result can never leave [0, 1]."""
        return Permill(self.parts * other.parts // self.ACCURACY)

    def __float__(self) -> float:
        return self.parts / self.ACCURACY


@dataclass(frozen=True, order=True)
class U16F16:
    """An unsigned fixed-point number with 16 integer and 16 fractional bits."""

    bits: int

    def __post_init__(self) -> None:
        if not 0 <= self.bits <= _U32_MAX:
            raise OverflowError("value does not fit in U16F16")

    @classmethod
    def from_num(cls, value: int | float | Rational) -> "U16F16":
        """Convert a number, rounding to the nearest representable value."""
        scaled = Fraction(value) * (1 << _FRAC_BITS)
        bits = round(scaled)
        if not 0 <= bits <= _U32_MAX:
            raise OverflowError(f"{value!r} does not fit in U16F16")
        return cls(bits)

    def checked_mul(self, other: "U16F16") -> "U16F16 | None":
        """Multiply, truncating the fraction; ``None`` on overflow."""
        product = (self.bits * other.bits) >> _FRAC_BITS
        if product > _U32_MAX:
            return None
        return U16F16(product)

    def __truediv__(self, divisor: "int | U16F16") -> "U16F16":
        """Divide by an integer or another U16F16, truncating."""
        if isinstance(divisor, U16F16):
            if divisor.bits == 0:
                raise ZeroDivisionError("division by zero")
            bits = (self.bits << _FRAC_BITS) // divisor.bits
        elif isinstance(divisor, int):
            if divisor == 0:
                raise ZeroDivisionError("division by zero")
            if divisor < 0:
                raise ValueError("cannot divide an unsigned value by a negative number")
            bits = self.bits // divisor
        else:
            return NotImplemented
        if bits > _U32_MAX:
            raise OverflowError("quotient does not fit in U16F16")
        return U16F16(bits)

    def __float__(self) -> float:
        return self.bits / (1 << _FRAC_BITS)


@dataclass(frozen=True)
class PermillUpdated:
    new_factor: Permill
    new_product: Permill


@dataclass(frozen=True)
class FixedUpdated:
    new_factor: U16F16
    new_product: U16F16


@dataclass(frozen=True)
class ManualUpdated:
    new_factor: int
    new_product: int


class FixedPoint:
    """Holds the three accumulators; each starts at one."""

    def __init__(self, system: System) -> None:
        self.system = system
        self.permill_value = Permill.one()
        self.fixed_value = U16F16.from_num(1)
        self.manual_value = 1 << _FRAC_BITS

    def update_permill(self, origin: Origin, new_factor: Permill) -> None:
        """Multiply the Permill accumulator; it cannot overflow."""
        ensure_signed(origin)
        new_product = self.permill_value.saturating_mul(new_factor)
        self.permill_value = new_product
        self.system.deposit_event(PermillUpdated(new_factor, new_product))

    def update_fixed(self, origin: Origin, new_factor: U16F16) -> None:
        """Multiply the U16F16 accumulator, raising Overflow if it does not fit."""
        ensure_signed(origin)
        new_product = self.fixed_value.checked_mul(new_factor)
        if new_product is None:
            raise Overflow("fixed accumulator overflowed")
        self.fixed_value = new_product
        self.system.deposit_event(FixedUpdated(new_factor, new_product))

    def update_manual(self, origin: Origin, new_factor: int) -> None:
        """Multiply the hand-rolled 16.16 accumulator, raising Overflow if needed."""
        ensure_signed(origin)
        if not 0 <= new_factor <= _U32_MAX:
            raise ValueError("new_factor must be an unsigned 32-bit integer")
        # The raw product has 32 fractional bits; shifting restores 16.
        shifted_product = (self.manual_value * new_factor) >> _FRAC_BITS
        if shifted_product > _U32_MAX:
            raise Overflow("manual accumulator overflowed")
        self.manual_value = shifted_product
        self.system.deposit_event(ManualUpdated(new_factor, shifted_product))