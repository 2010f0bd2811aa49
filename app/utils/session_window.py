"""
Betting session window resolution

A session opens at 18:00 on day D and closes at 08:20 on day D+1, or at
10:20 when D+1 is a Friday. Everything here is a pure function of the
"now" value passed in; request handlers resolve the window once and pass
the result along.
"""

from datetime import datetime, time, timedelta

from flask import current_app

from app.utils import timezone_utils

FRIDAY = 4


def _localize(naive, tz):
    """Attach tz to a naive local datetime (pytz zones need localize())"""
    if tz is None:
        return naive
    if hasattr(tz, "localize"):
        return tz.localize(naive)
    return naive.replace(tzinfo=tz)


def closing_hour_for(day, closing_hour=8, friday_closing_hour=10):
    """Closing hour for a session that closes on the given date/weekday"""
    weekday = day if isinstance(day, int) else day.weekday()
    return friday_closing_hour if weekday == FRIDAY else closing_hour


def format_clock_label(hour, minute):
    """12-hour label such as '8:20 AM'"""
    suffix = "AM" if hour < 12 else "PM"
    display_hour = hour % 12 or 12
    return f"{display_hour}:{minute:02d} {suffix}"


class SessionWindow:
    """One resolved betting session relative to a captured 'now'"""

    def __init__(self, now, session_start, closes_at, is_open):
        self.now = now
        self.session_start = session_start
        self.closes_at = closes_at
        self.is_open = is_open

    def __repr__(self):
        state = "open" if self.is_open else "closed"
        return f"<SessionWindow {self.session_start.isoformat()} {state}>"

    @property
    def session_start_utc(self):
        """Session start as naive UTC, the form stored on Game rows"""
        return timezone_utils.to_naive_utc(self.session_start)

    @property
    def closing_time_label(self):
        return format_clock_label(self.closes_at.hour, self.closes_at.minute)

    def to_dict(self):
        return {
            "isOpen": self.is_open,
            "sessionStart": self.session_start.isoformat(),
            "closesAt": self.closes_at.isoformat(),
            "closingTimeLabel": self.closing_time_label,
            "now": self.now.isoformat(),
        }


def resolve_session_window(
    now,
    start_hour=18,
    closing_hour=8,
    friday_closing_hour=10,
    closing_minute=20,
):
    """
    Map a local timestamp to its betting session.

    Args:
        now: local datetime (aware or naive) to resolve against
        start_hour: hour the session opens
        closing_hour: hour the session closes on regular days
        friday_closing_hour: hour the session closes on Fridays
        closing_minute: minute past the closing hour betting stops

    Returns:
        SessionWindow
    """
    tz = now.tzinfo

    if now.hour >= start_hour:
        start_day = now.date()
    else:
        start_day = now.date() - timedelta(days=1)

    session_start = _localize(datetime.combine(start_day, time(start_hour)), tz)

    close_day = start_day + timedelta(days=1)
    close_hour = closing_hour_for(close_day, closing_hour, friday_closing_hour)
    closes_at = _localize(
        datetime.combine(close_day, time(close_hour, closing_minute)), tz
    )

    # Evaluated against the current weekday, not the session's start day
    current_closing_hour = closing_hour_for(now, closing_hour, friday_closing_hour)
    is_open = (
        now.hour >= start_hour
        or now.hour < current_closing_hour
        or (now.hour == current_closing_hour and now.minute < closing_minute)
    )

    return SessionWindow(now, session_start, closes_at, is_open)


def get_current_window(now=None):
    """Resolve the window for 'now' (defaults to the app clock) using app config"""
    if now is None:
        now = timezone_utils.get_current_time()
    elif now.tzinfo is None:
        now = timezone_utils.get_app_timezone().localize(now)

    cfg = current_app.config
    return resolve_session_window(
        now,
        start_hour=cfg.get("SESSION_START_HOUR", 18),
        closing_hour=cfg.get("CLOSING_HOUR", 8),
        friday_closing_hour=cfg.get("FRIDAY_CLOSING_HOUR", 10),
        closing_minute=cfg.get("CLOSING_MINUTE", 20),
    )
