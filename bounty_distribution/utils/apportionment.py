"""Largest-remainder apportionment of an integer total."""

from __future__ import annotations

from collections.abc import Sequence


def apportion(weights: Sequence[int], total: int) -> list[int]:
    """
    Split `total` into integer parts proportional to `weights`.

    Each part starts at floor(total * w / sum(weights)). The residual left by
    flooring is handed out one unit at a time to the parts with the largest
    fractional remainder; equal remainders go to the earlier index.

    Guarantees:
    - sum(result) == total
    - a zero weight always gets zero
    - same inputs always give the same result

    Args:
        weights: Non-negative integer weights, at least one positive
        total: Non-negative integer to split

    Returns:
        List of parts, same length and order as `weights`

    Raises:
        ValueError: If weights are negative, all zero, or total is negative
    """
    if total < 0:
        raise ValueError(f"Total must be non-negative, got {total}")
    if any(w < 0 for w in weights):
        raise ValueError("Weights must be non-negative")

    weight_sum = sum(weights)
    if weight_sum == 0:
        raise ValueError("At least one weight must be positive")

    parts = []
    remainders = []
    for weight in weights:
        quotient, remainder = divmod(total * weight, weight_sum)
        parts.append(quotient)
        remainders.append(remainder)

    residual = total - sum(parts)
    # Residual is always smaller than the number of non-zero remainders
    order = sorted(range(len(weights)), key=lambda i: (-remainders[i], i))
    for index in order[:residual]:
        parts[index] += 1

    return parts
