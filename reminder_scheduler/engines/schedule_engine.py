"""Schedule Engine for the reminder scheduler.

Unified recurrence engine using a hybrid approach:
- `dateutil.rrule` for weekly rules with an explicit weekday set
- plain day arithmetic for DAILY and single-weekday WEEKLY rules
- `dateutil.relativedelta` (via dt_utils) for month/year clamping
  (Jan 31 + 1 month = Feb 29/28, never rolled into March)

The engine works on calendar dates. The time of day of an occurrence is the
anchor's time and is carried unchanged by callers.

IMPORTANT: This module must NOT import from the service layer or the store.
Only import from const.py, type_defs.py, utils and third-party libraries.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING, ClassVar

from dateutil.rrule import FR, MO, SA, SU, TH, TU, WE, WEEKLY, rrule

from .. import const
from ..utils.dt_utils import add_months_clamped, dt_parse_date

if TYPE_CHECKING:
    from ..type_defs import RecurrenceConfig


class RecurrenceEngine:
    """Compute occurrences of a recurrence rule anchored at a first date.

    Handles all frequency types:
    - NONE: exactly one occurrence, the anchor
    - DAILY: every `interval` days
    - WEEKLY: every `interval` weeks on the anchor weekday, or on each day of
      `applicable_days` within every `interval`-th week counted from the
      anchor's week
    - MONTHLY / YEARLY: every `interval` months/years with day clamping

    Clamp basis (MONTHLY/YEARLY):
    - CLAMP_BASIS_ANCHOR: aim for the anchor's day-of-month on every step,
      so Jan 31 -> Feb 29 -> Mar 31.
    - CLAMP_BASIS_PREVIOUS: aim for the previous occurrence's day, so a clamp
      sticks: Jan 31 -> Feb 29 -> Mar 29.
    """

    WEEKDAY_TO_RRULE: ClassVar[list] = [MO, TU, WE, TH, FR, SA, SU]

    # Frequencies stepped by a fixed number of days
    FIXED_LENGTH_FREQUENCIES: ClassVar[set[str]] = {
        const.FREQUENCY_DAILY,
        const.FREQUENCY_WEEKLY,
    }

    def __init__(self, config: RecurrenceConfig, anchor: date) -> None:
        """Initialize the recurrence engine.

        Args:
            config: Normalized RecurrenceConfig (see data_builders.build_recurrence).
            anchor: The first occurrence of the series.

        Raises:
            ValueError: If interval is not a positive integer or frequency is
                unknown. Rules are validated before they are stored, so this only
                fires for records that bypassed data_builders.
        """
        self._anchor = anchor
        self._frequency = config.get("frequency", const.FREQUENCY_NONE)
        if self._frequency not in const.FREQUENCY_OPTIONS:
            raise ValueError(f"Unsupported frequency: {self._frequency}")

        interval = config.get("interval", const.DEFAULT_INTERVAL)
        if isinstance(interval, bool) or not isinstance(interval, int) or interval <= 0:
            raise ValueError(f"Interval must be a positive integer, got {interval!r}")
        self._interval = interval

        self._applicable_days = sorted(set(config.get("applicable_days") or []))
        self._clamp_basis = config.get("clamp_basis", const.DEFAULT_CLAMP_BASIS)

        until = config.get("until")
        self._until: date | None = dt_parse_date(until) if until else None

        self._rule: rrule | None = None
        if self._frequency == const.FREQUENCY_WEEKLY and self._applicable_days:
            # Type stubs expect weekday objects, rrule accepts these at runtime
            self._rule = rrule(
                WEEKLY,
                interval=self._interval,
                dtstart=datetime.combine(anchor, time.min),
                byweekday=[self.WEEKDAY_TO_RRULE[d] for d in self._applicable_days],
                wkst=MO,
            )

    @property
    def anchor(self) -> date:
        """Return the first occurrence of the series."""
        return self._anchor

    @property
    def is_recurring(self) -> bool:
        """Return True if the rule produces more than the anchor."""
        return self._frequency != const.FREQUENCY_NONE

    # =========================================================================
    # Public API
    # =========================================================================

    def get_next_occurrence(self, after: date) -> date | None:
        """Return the occurrence that follows `after`, or None when exhausted.

        `after` is treated as the previous occurrence of the series:
        DAILY and plain WEEKLY rules step from it, MONTHLY/YEARLY rules advance
        it with clamping, and WEEKLY rules with a day set return the soonest
        listed weekday strictly after it.

        Args:
            after: The previous occurrence (or any reference date).

        Returns:
            The next occurrence date, or None if the rule is NONE or the next
            step would fall after `until`.
        """
        if self._frequency == const.FREQUENCY_NONE:
            return None

        result = self._step(after)
        if result is None:
            return None
        return self._within_until(result)

    def is_exhausted(self, after: date) -> bool:
        """Return True if no occurrence exists after `after`."""
        return self.get_next_occurrence(after) is None

    def first_occurrence_on_or_after(
        self, start: date, not_before: date
    ) -> date | None:
        """Return the first occurrence strictly after `start` that is >= not_before.

        This is the catch-up calculation used by upcoming queries and completion
        handling. Fixed-length rules fast-forward mathematically, weekday-set
        rules ask rrule directly, and month/year rules step with a safety limit.

        Args:
            start: The last occurrence already accounted for.
            not_before: Earliest acceptable occurrence date.

        Returns:
            The occurrence, or None if the series is exhausted before reaching it.
        """
        if self._frequency == const.FREQUENCY_NONE:
            return None

        if self._rule is not None:
            if not_before > start:
                found = self._rule.after(
                    datetime.combine(not_before, time.min), inc=True
                )
            else:
                found = self._rule.after(datetime.combine(start, time.min), inc=False)
            return self._within_until(found.date()) if found else None

        if self._frequency in self.FIXED_LENGTH_FREQUENCIES:
            return self._within_until(self._fast_forward(start, not_before))

        current = start
        iteration = 0
        while iteration < const.MAX_RECURRENCE_STEPS:
            iteration += 1
            nxt = self.get_next_occurrence(current)
            if nxt is None:
                return None
            if nxt >= not_before:
                return nxt
            current = nxt

        const.LOGGER.warning(
            "RecurrenceEngine: Max iterations reached for %s (anchor=%s)",
            self._frequency,
            self._anchor,
        )
        return None

    def last_occurrence_on_or_before(
        self, start: date, not_after: date
    ) -> date | None:
        """Return the latest occurrence strictly after `start` that is <= not_after.

        The mirror of first_occurrence_on_or_after, used to find the most
        recent occurrence that has already fallen due. `until` caps the search.

        Args:
            start: The last occurrence already accounted for.
            not_after: Latest acceptable occurrence date.

        Returns:
            The occurrence, or None if no occurrence lies in (start, not_after].
        """
        if self._frequency == const.FREQUENCY_NONE:
            return None

        if self._until is not None and self._until < not_after:
            not_after = self._until
        if not_after <= start:
            return None

        if self._rule is not None:
            found = self._rule.before(datetime.combine(not_after, time.max), inc=True)
            if found is None or found.date() <= start:
                return None
            return found.date()

        if self._frequency in self.FIXED_LENGTH_FREQUENCIES:
            step_days = self._step_days()
            steps = (not_after - start).days // step_days
            if steps < 1:
                return None
            return start + timedelta(days=steps * step_days)

        found_date: date | None = None
        current = start
        iteration = 0
        while iteration < const.MAX_RECURRENCE_STEPS:
            iteration += 1
            nxt = self._step(current)
            if nxt is None or nxt > not_after:
                return found_date
            found_date = current = nxt

        const.LOGGER.warning(
            "RecurrenceEngine: Max iterations reached for %s (anchor=%s)",
            self._frequency,
            self._anchor,
        )
        return found_date

    def get_occurrences(
        self,
        start: date,
        end: date,
        limit: int = const.DEFAULT_OCCURRENCE_LIMIT,
    ) -> list[date]:
        """Generate occurrences of the series within [start, end].

        Args:
            start: Range start (inclusive).
            end: Range end (inclusive).
            limit: Maximum occurrences to return (safety limit).

        Returns:
            Occurrence dates in ascending order, anchor included if in range.
        """
        occurrences: list[date] = []
        if end < start:
            return occurrences

        if self._anchor >= start:
            current: date | None = self._anchor
        else:
            current = self.first_occurrence_on_or_after(self._anchor, start)

        while current is not None and current <= end and len(occurrences) < limit:
            occurrences.append(current)
            current = self.get_next_occurrence(current)

        return occurrences

    def to_rrule_string(self, all_day: bool = False) -> str:
        """Generate an RFC 5545 RRULE string for calendar export.

        Args:
            all_day: True if the series has no time of day (affects UNTIL form).

        Returns:
            RRULE string (e.g. "FREQ=WEEKLY;INTERVAL=1;BYDAY=MO,WE"), or an empty
            string for NONE and for clamped series RFC 5545 cannot express.
        """
        freq = self._frequency
        if freq == const.FREQUENCY_NONE:
            return ""

        parts = [f"FREQ={freq.upper()}", f"INTERVAL={self._interval}"]

        if freq == const.FREQUENCY_WEEKLY and self._applicable_days:
            days = ",".join(const.RRULE_WEEKDAY_CODES[d] for d in self._applicable_days)
            parts.append(f"BYDAY={days}")

        if freq in (const.FREQUENCY_MONTHLY, const.FREQUENCY_YEARLY):
            day = self._anchor.day
            if day > 28:
                # A previous-basis clamp drifts permanently; RRULE has no form for it
                if self._clamp_basis == const.CLAMP_BASIS_PREVIOUS:
                    return ""
                if freq == const.FREQUENCY_YEARLY:
                    parts.append(f"BYMONTH={self._anchor.month}")
                candidates = ",".join(str(d) for d in range(28, day + 1))
                parts.append(f"BYMONTHDAY={candidates}")
                parts.append("BYSETPOS=-1")

        if self._until is not None:
            until = self._until.strftime("%Y%m%d")
            parts.append(f"UNTIL={until}" if all_day else f"UNTIL={until}T235959")

        return ";".join(parts)

    # =========================================================================
    # Private helpers
    # =========================================================================

    def _step(self, after: date) -> date | None:
        """Advance one step from `after` without applying `until`."""
        freq = self._frequency

        if freq == const.FREQUENCY_DAILY:
            return after + timedelta(days=self._interval)

        if freq == const.FREQUENCY_WEEKLY:
            if self._rule is None:
                return after + timedelta(weeks=self._interval)
            found = self._rule.after(datetime.combine(after, time.min), inc=False)
            return found.date() if found else None

        if freq == const.FREQUENCY_MONTHLY:
            return add_months_clamped(after, self._interval, self._basis_day())

        if freq == const.FREQUENCY_YEARLY:
            return add_months_clamped(after, self._interval * 12, self._basis_day())

        return None

    def _basis_day(self) -> int | None:
        """Return the day-of-month to aim for, or None to use the previous day."""
        if self._clamp_basis == const.CLAMP_BASIS_ANCHOR:
            return self._anchor.day
        return None

    def _step_days(self) -> int:
        """Return the step length in days for fixed-length frequencies."""
        if self._frequency == const.FREQUENCY_WEEKLY:
            return self._interval * const.DAYS_PER_WEEK
        return self._interval

    def _fast_forward(self, start: date, not_before: date) -> date:
        """Jump to the first fixed-length step after start that is >= not_before."""
        step_days = self._step_days()
        gap = (not_before - start).days
        steps = max(1, -(-gap // step_days))
        return start + timedelta(days=steps * step_days)

    def _within_until(self, candidate: date) -> date | None:
        """Return candidate unless it falls after the inclusive `until` bound."""
        if self._until is not None and candidate > self._until:
            const.LOGGER.debug(
                "RecurrenceEngine: %s is past until=%s, series exhausted",
                candidate,
                self._until,
            )
            return None
        return candidate


# =============================================================================
# Module-level convenience functions
# =============================================================================


def calculate_next_occurrence(
    config: RecurrenceConfig, anchor: date, after: date
) -> date | None:
    """Calculate the occurrence following `after` using RecurrenceEngine.

    Convenience function for one-off calculations.

    Args:
        config: Normalized recurrence configuration.
        anchor: First occurrence of the series.
        after: Previous occurrence.

    Returns:
        Next occurrence date, or None when exhausted.
    """
    return RecurrenceEngine(config, anchor).get_next_occurrence(after)
