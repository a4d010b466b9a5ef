from datetime import datetime, timezone, timedelta
import re

# Indian Standard Time (IST) offset: UTC +5:30
IST = timezone(timedelta(hours=5, minutes=30))


def get_now_ist() -> datetime:
    """Get current datetime in IST"""
    return datetime.now(IST)


def to_ist(dt: datetime) -> datetime:
    """Convert an aware datetime to IST or localize a naive one"""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=IST)
    return dt.astimezone(IST)


def _normalize_fraction(dt_str: str) -> str:
    # Python < 3.11 fromisoformat expects 3 or 6 fractional digits; Supabase may return 5.
    match = re.match(r"^(.*T[\d:]+)\.(\d+)(.*)$", dt_str)
    if not match:
        return dt_str
    base, fraction, tz_part = match.groups()
    return f"{base}.{(fraction + '000000')[:6]}{tz_part}"


def parse_datetime_safe(dt_str: str) -> datetime:
    """
    Parse a timestamp string returned by Supabase.
    Handles:
    - UTC format: '2026-01-28T12:24:00Z' or '2026-01-28T12:24:00+00:00'
    - IST format: '2026-01-28T12:24:00+05:30'
    - Naive format: '2026-01-28T12:24:00' (assumed IST)

    Always returns IST-aware datetime.
    """
    if not dt_str:
        raise ValueError("Empty datetime string")

    dt_str = dt_str.strip()
    if dt_str.endswith("Z"):
        dt_str = dt_str[:-1] + "+00:00"
    dt_str = _normalize_fraction(dt_str)

    try:
        dt = datetime.fromisoformat(dt_str)
    except ValueError as e:
        raise ValueError(f"Failed to parse datetime '{dt_str}': {e}")
    return to_ist(dt)
