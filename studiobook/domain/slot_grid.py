"""
Canonical slot grid for a studio day.

Pure domain logic: the same grid applies to every calendar day, so the
result is cached per (start, end, step) triple.
"""

from functools import lru_cache
from typing import Sequence, Tuple

from .exceptions import ConfigurationError
from .models import MINUTES_PER_DAY, Slot

DEFAULT_START_MINUTE = 9 * 60
DEFAULT_END_MINUTE = 20 * 60
DEFAULT_STEP_MINUTES = 30


@lru_cache(maxsize=32)
def generate_slots(
    start_minute: int = DEFAULT_START_MINUTE,
    end_minute: int = DEFAULT_END_MINUTE,
    step_minutes: int = DEFAULT_STEP_MINUTES,
) -> Tuple[Slot, ...]:
    """
    Generate the gapless ordered slot sequence covering ``[start, end)``.

    Args:
        start_minute: Opening time in minutes after midnight
        end_minute: Closing time in minutes after midnight (exclusive)
        step_minutes: Length of every slot

    Returns:
        Tuple of Slot objects, indexed from 0

    Raises:
        ConfigurationError: If the window is empty, leaves the day, or is not
            evenly divisible by the step
    """
    if step_minutes <= 0:
        raise ConfigurationError(f"Slot step must be positive, got {step_minutes}")
    if end_minute <= start_minute:
        raise ConfigurationError(
            f"Grid end ({end_minute}) must be after grid start ({start_minute})"
        )
    if start_minute < 0 or end_minute > MINUTES_PER_DAY:
        raise ConfigurationError("Grid window must lie within a single day")

    window = end_minute - start_minute
    if window % step_minutes:
        raise ConfigurationError(
            f"Slot step of {step_minutes} minutes does not divide the "
            f"{window}-minute window evenly"
        )

    return tuple(
        Slot(index=i, start_minute=start_minute + i * step_minutes, duration_minutes=step_minutes)
        for i in range(window // step_minutes)
    )


def slot_by_index(grid: Sequence[Slot], index: int | None) -> Slot | None:
    """Return the slot at ``index`` or None when out of range / unresolved."""
    if index is None or not 0 <= index < len(grid):
        return None
    return grid[index]
