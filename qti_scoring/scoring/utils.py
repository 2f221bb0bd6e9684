"""
Fixed-Point Utilities
qti_scoring/scoring/utils.py

Exact decimal arithmetic for rubric points and scores. Every value is held
as an integer scaled by 10**scale; no binary floating point is involved.
"""

from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional, Tuple

# Stored values outside the double range are treated as non-numeric.
MAX_EXPONENT = 308


def decimal_places(value: str) -> int:
    """Number of fractional digits in a decimal string ("2.50" -> 2)."""
    normalized = value[1:] if value.startswith("+") else value
    index = normalized.find(".")
    return 0 if index == -1 else len(normalized) - index - 1


def max_scale(values: Iterable[str]) -> int:
    """Largest fractional-digit count across ``values`` (0 when empty)."""
    return max((decimal_places(v) for v in values), default=0)


def to_scaled_int(value: str, scale: int) -> int:
    """
    Parse a decimal string into an integer scaled by 10**scale.

    Fractional digits beyond ``scale`` are truncated, missing ones are
    zero-padded: to_scaled_int("1.5", 2) == 150.
    """
    normalized = value[1:] if value.startswith("+") else value
    negative = normalized.startswith("-")
    cleaned = normalized[1:] if negative else normalized
    whole, _, frac = cleaned.partition(".")
    padded = frac.ljust(scale, "0")[:scale]
    scaled = int(whole or "0") * 10 ** scale + int(padded or "0")
    return -scaled if negative else scaled


def format_scaled(value: int, scale: int) -> str:
    """
    Render a scaled integer as its minimal decimal string.

    Trailing fractional zeros and a dangling decimal point are dropped:
    format_scaled(350, 2) == "3.5", format_scaled(300, 2) == "3".
    """
    if scale == 0:
        return str(value)
    sign = "-" if value < 0 else ""
    whole, frac = divmod(abs(value), 10 ** scale)
    raw = f"{whole}.{str(frac).rjust(scale, '0')}"
    return sign + raw.rstrip("0").rstrip(".")


def parse_number(value: str) -> Optional[Decimal]:
    """
    Read a stored numeric value (``"2.5"``, ``".5"``, ``"1E1"``, ``" 4 "``).

    Returns None for empty, non-numeric or non-finite text.
    """
    text = value.strip()
    if not text or "_" in text:
        return None
    try:
        number = Decimal(text)
    except InvalidOperation:
        return None
    if not number.is_finite() or abs(number.as_tuple().exponent) > MAX_EXPONENT:
        return None
    return number


def parse_decimal(value: str) -> Optional[Tuple[int, int]]:
    """
    Parse a stored score into ``(scaled, scale)``.

    The scale is the number of fractional digits the value actually carries
    once any exponent is applied: ``"1E1"`` -> (10, 0), ``".5"`` -> (5, 1).
    Returns None if ``value`` is not a finite number.
    """
    number = parse_number(value)
    if number is None:
        return None
    sign, digits, exponent = number.as_tuple()
    coefficient = int("".join(map(str, digits)))
    if exponent >= 0:
        scaled, scale = coefficient * 10 ** exponent, 0
    else:
        scaled, scale = coefficient, -exponent
    return (-scaled if sign else scaled), scale


def aggregate_scaled(scores: List[Tuple[int, int]]) -> Tuple[int, int]:
    """
    Sum ``(scaled, scale)`` pairs at the finest scale present.

    Formula: total = Σ scaled_i × 10**(max_scale − scale_i)
    Returns (0, 0) for an empty list.
    """
    if not scores:
        return 0, 0
    target = max(scale for _, scale in scores)
    total = sum(scaled * 10 ** (target - scale) for scaled, scale in scores)
    return total, target
