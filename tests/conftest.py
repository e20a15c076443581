"""
Shared fixtures and helpers for the test suite.
"""

from typing import List

import pendulum
import pytest
from pendulum import DateTime

from groupavail.domain.models import SlotReason, SlotVerdict


def utc(text: str) -> DateTime:
    """Parse a wall-clock string as UTC."""
    return pendulum.parse(text, tz="UTC")


def verdicts_from(pattern: str) -> List[SlotVerdict]:
    """Build a verdict sequence from a string like 'FFB' (F = free, B = busy)."""
    return [
        SlotVerdict(free=True, reason=SlotReason.FREE)
        if char == "F"
        else SlotVerdict(free=False, reason=SlotReason.CALENDAR_EVENT)
        for char in pattern
    ]


class ManualClock:
    """Clock the tests move by hand."""

    def __init__(self, start: DateTime):
        self.current = start

    def __call__(self) -> DateTime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current.add(**kwargs)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(utc("2025-03-03 12:00"))
