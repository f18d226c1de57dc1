"""
Official STPM grade scale.

Maps an aggregate mark on the 0-100 scale to a letter grade. The bands are
not uniform: C+ and C span ten marks each while the others span five or six.
"""

from decimal import Decimal
from typing import Any

# Ordered by descending lower bound; the first band whose bound is met wins.
GRADE_BANDS: tuple[tuple[Decimal, str], ...] = (
    (Decimal("80"), "A"),
    (Decimal("75"), "A-"),
    (Decimal("70"), "B+"),
    (Decimal("65"), "B"),
    (Decimal("60"), "B-"),
    (Decimal("50"), "C+"),  # 50-59
    (Decimal("40"), "C"),  # 40-49
    (Decimal("35"), "C-"),
    (Decimal("30"), "D+"),
    (Decimal("24"), "D"),
)

FAIL_GRADE = "F"

GRADE_ORDER: tuple[str, ...] = tuple(letter for _, letter in GRADE_BANDS) + (FAIL_GRADE,)


def grade_of(mark: Any) -> str:
    """
    Return the letter grade for a mark.

    Total over all real inputs: marks above 100 fall into the top band and
    negative marks into F.

    Args:
        mark: Numeric mark (int, float, Decimal or numeric string).

    Returns:
        One of the letters in GRADE_ORDER.
    """
    value = mark if isinstance(mark, Decimal) else Decimal(str(mark))
    if value.is_nan():
        return FAIL_GRADE
    for lower_bound, letter in GRADE_BANDS:
        if value >= lower_bound:
            return letter
    return FAIL_GRADE


def grade_rank(letter: str) -> int:
    """Return the position of a letter in the scale, 0 being the best grade."""
    return GRADE_ORDER.index(letter)


def grade_family(letter: str) -> str:
    """Collapse a letter grade to its family (A, B, C, D or F) for display."""
    return letter[0]


def band_ranges() -> list[tuple[str, str]]:
    """Return (letter, "low-high") pairs describing every band of the scale."""
    ranges: list[tuple[str, str]] = []
    upper = Decimal("100")
    for lower_bound, letter in GRADE_BANDS:
        ranges.append((letter, f"{lower_bound}-{upper}"))
        upper = lower_bound - 1
    ranges.append((FAIL_GRADE, f"0-{upper}"))
    return ranges
