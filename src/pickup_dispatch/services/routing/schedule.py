"""Weekly schedule helpers for routes."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from ...models.domain import Route, Weekday


def is_scheduled_on(route: Route, day: date) -> bool:
    return Weekday.from_date(day) in route.schedule.days


def next_scheduled_at(route: Route, now: datetime) -> datetime | None:
    """First scheduled start strictly after ``now``, or None without schedule days.

    The result carries ``now``'s timezone. Looks at most one week ahead, so a
    route scheduled only on today's weekday whose start time has passed
    resolves to the same weekday next week.
    """

    if not route.schedule.days:
        return None

    hours, minutes = (int(part) for part in route.schedule.start_time.split(":"))
    start = time(hours, minutes)
    for offset in range(8):
        candidate_day = now.date() + timedelta(days=offset)
        if not is_scheduled_on(route, candidate_day):
            continue
        candidate = datetime.combine(candidate_day, start, tzinfo=now.tzinfo)
        if candidate > now:
            return candidate
    return None
