"""Tick scheduler that converts rate curve output into dispatch commands."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from loadsurge.rates.base import RateCurve


@dataclass(frozen=True)
class TickCommand:
    """How many requests to dispatch at one tick.

    Attributes:
        index: Zero-based tick number.
        elapsed_seconds: Time offset from run start.
        target_rps: Rate curve output at this offset.
        request_count: Requests to dispatch, the target scaled by the tick
            interval plus the remainder carried from earlier ticks, rounded.
    """

    index: int
    elapsed_seconds: float
    target_rps: float
    request_count: int


class Scheduler:
    """Converts a RateCurve's timeline into TickCommands.

    Reads from ``RateCurve.iter_targets()`` and emits one ``TickCommand``
    per tick.  A tick fires every *tick_interval* seconds from zero up to,
    but excluding, the end of the run.

    Args:
        curve: The rate curve to follow.
        tick_interval: Seconds between ticks.
    """

    def __init__(self, curve: RateCurve, tick_interval: float = 1.0) -> None:
        """Initialize the scheduler.

        Args:
            curve: RateCurve instance defining the target RPS over time.
            tick_interval: Seconds between ticks. Defaults to 1.0.
        """
        self._curve = curve
        self._tick_interval = tick_interval

    @property
    def tick_interval(self) -> float:
        return self._tick_interval

    def iter_commands(self) -> Iterator[TickCommand]:
        """Yield a TickCommand for each tick of the curve.

        The request count covers one tick: the target rate scaled by the
        tick interval, rounded half up.  The rounding remainder carries over
        to the next tick, so fractional rates are met on average (0.5 RPS
        sends one request every other second).

        Yields:
            A TickCommand for each tick in the curve's timeline.
        """
        carry = 0.0
        for index, (elapsed, target) in enumerate(self._curve.iter_targets(self._tick_interval)):
            owed = carry + target * self._tick_interval
            count = math.floor(owed + 0.5)
            carry = owed - count
            yield TickCommand(
                index=index,
                elapsed_seconds=elapsed,
                target_rps=target,
                request_count=count,
            )

    @property
    def total_ticks(self) -> int:
        """Return the expected number of ticks for this schedule."""
        return sum(1 for _ in self._curve.iter_targets(self._tick_interval))
