"""
Maps free-form time labels onto the canonical slot grid.

Labels arrive as typed by staff, entered by customers or imported from
spreadsheets: ``"9:00"``, ``"09:00"``, ``"9:00 AM"``, ``"9:00-9:30 am"``.
Matching is intentionally tolerant; an unmatched label yields None and must
be reconciled by a human, never treated as a denial.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Sequence, Tuple

from .models import Slot

logger = logging.getLogger(__name__)

_RANGE_SEPARATOR = re.compile(r"[-–—]|(?<=[\dm])to(?=\d)")
_TIME_PARTS = re.compile(r"^(\d{1,2})(?::(\d{2}))?(am|pm)?$")
_MERIDIEMS = ("am", "pm")


def _strip(raw: object) -> str:
    return re.sub(r"[\s.]", "", str(raw)).casefold()


def _has_meridiem(text: str) -> bool:
    return text.endswith(_MERIDIEMS)


def _parse_minutes(text: str) -> Tuple[int, int, Optional[str]] | None:
    match = _TIME_PARTS.match(text)
    if not match:
        return None
    hour = int(match.group(1))
    minute = int(match.group(2) or 0)
    if hour > 23 or minute > 59:
        return None
    return hour, minute, match.group(3)


def _infer_meridiem(start: str, end: str) -> str:
    """
    Give a bare start time the meridiem implied by the range's end time.

    ``"1:00"`` / ``"1:30pm"`` becomes ``"1:00pm"``; ``"11:30"`` / ``"12:00pm"``
    becomes ``"11:30am"``: the latest reading still before the end wins.
    """
    start_parts = _parse_minutes(start)
    end_parts = _parse_minutes(end)
    if not start_parts or not end_parts or end_parts[2] is None:
        return start

    hour, minute, _ = start_parts
    if hour > 12:
        return start  # already 24-hour

    end_hour, end_minute, end_period = end_parts
    end_total = (end_hour % 12 + (12 if end_period == "pm" else 0)) * 60 + end_minute

    am_total = (hour % 12) * 60 + minute
    if am_total + 12 * 60 < end_total:
        return f"{start}pm"
    if am_total < end_total:
        return f"{start}am"
    return f"{start}{end_period}"


def normalize_label(raw: object) -> str:
    """
    Reduce a raw label to a comparable start-time candidate.

    Strips whitespace and dots, case-folds, and keeps the left-hand side of a
    range, borrowing the meridiem from the right-hand side when missing.
    """
    if raw is None:
        return ""
    text = _strip(raw)
    parts = _RANGE_SEPARATOR.split(text, maxsplit=1)
    candidate = parts[0]
    if len(parts) == 2 and candidate and not _has_meridiem(candidate):
        candidate = _infer_meridiem(candidate, parts[1])
    return candidate


def canonical_forms(slot: Slot) -> Tuple[str, str]:
    """Comparable 12-hour and 24-hour start labels for a slot."""
    return _strip(slot.start_label), slot.clock_label


def _exact_candidates(candidate: str) -> Tuple[str, ...]:
    """
    The candidate itself plus its canonical spelling: ``"09:00am"`` and
    ``"9am"`` read as ``"9:00am"``, a bare ``"9:00"`` as ``"09:00"``.
    """
    parts = _parse_minutes(candidate)
    if not parts:
        return (candidate,)
    hour, minute, period = parts
    if period is None:
        return candidate, f"{hour:02d}:{minute:02d}"
    if not 1 <= hour <= 12:
        return (candidate,)
    return candidate, f"{hour}:{minute:02d}{period}"


def match_slot(raw_label: object, grid: Sequence[Slot], exact_only: bool = False) -> Optional[int]:
    """
    Resolve a raw label to a slot index.

    Exact matches against any slot win first. Otherwise a slot matches when
    the candidate is a substring of its canonical label or vice versa, and
    the earliest such slot wins. With ``exact_only`` the substring tiers are
    skipped, so only canonical 12-hour or 24-hour labels resolve.

    Returns:
        The slot index, or None when the label cannot be resolved
    """
    candidate = normalize_label(raw_label)
    if not candidate:
        return None

    forms = [(slot.index, canonical_forms(slot)) for slot in grid]

    exact = _exact_candidates(candidate)
    for index, canon in forms:
        if any(form in canon for form in exact):
            return index

    if exact_only:
        logger.debug("Time label %r is not a canonical slot label", raw_label)
        return None

    loose: List[int] = [
        index
        for index, canon in forms
        if any(candidate in form or form in candidate for form in canon)
    ]
    if not loose:
        logger.debug("Unresolved time label %r (candidate %r)", raw_label, candidate)
        return None

    if len(loose) > 1:
        logger.warning(
            "Ambiguous time label %r matched slots %s; using earliest",
            raw_label,
            loose,
        )
    return loose[0]
