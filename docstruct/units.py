from __future__ import annotations

from decimal import Decimal
from fractions import Fraction

TWIPS_PER_POINT = 20
EIGHTHS_PER_POINT = 8
HALF_POINTS_PER_POINT = 2


def parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def twips_to_pt(value: int | str | None) -> Fraction | None:
    numeric = value if isinstance(value, int) else parse_int(value)
    if numeric is None:
        return None
    return Fraction(numeric, TWIPS_PER_POINT)


def eighths_to_pt(value: int | str | None) -> Fraction | None:
    numeric = value if isinstance(value, int) else parse_int(value)
    if numeric is None:
        return None
    return Fraction(numeric, EIGHTHS_PER_POINT)


def half_points_to_pt(value: int | str | None) -> Fraction | None:
    numeric = value if isinstance(value, int) else parse_int(value)
    if numeric is None:
        return None
    return Fraction(numeric, HALF_POINTS_PER_POINT)


def format_number(value: Fraction | int) -> str:
    fraction = Fraction(value)
    if fraction.denominator == 1:
        return str(fraction.numerator)
    # denominators from /20, /8 and /2 always terminate in base ten
    text = format(Decimal(fraction.numerator) / Decimal(fraction.denominator), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_pt(value: Fraction | int | None) -> str | None:
    if value is None:
        return None
    return f"{format_number(value)}pt"
