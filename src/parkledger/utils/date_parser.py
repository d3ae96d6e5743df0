"""Date parsing utilities."""

from datetime import date, timedelta
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta


def parse_date(date_str: str) -> date:
    """Parse a date string into a date object.

    Supports various formats including relative dates:
    - ISO dates: "2024-01-15"
    - German dates: "15.01.2024" (day first)
    - Free-form dates: "January 15, 2024"
    - Relative dates: "today"/"heute", "yesterday"/"gestern",
      "tomorrow"/"morgen", "in 14 days", "end of month"

    Args:
        date_str: Date string in various formats

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    date_str = date_str.strip().lower()
    today = date.today()

    # Handle relative dates
    relative_dates = {
        "today": today,
        "heute": today,
        "yesterday": today - timedelta(days=1),
        "gestern": today - timedelta(days=1),
        "tomorrow": today + timedelta(days=1),
        "morgen": today + timedelta(days=1),
        "end of month": today + relativedelta(day=31),
    }

    if date_str in relative_dates:
        return relative_dates[date_str]

    # Handle "in N days" (payment terms)
    if date_str.startswith("in ") and date_str.endswith(" days"):
        count = date_str[3:-5].strip()
        if count.isdigit():
            return today + timedelta(days=int(count))

    # Try parsing as absolute date
    try:
        dt = date_parser.parse(date_str, dayfirst="." in date_str)
        return dt.date()
    except (ValueError, TypeError, OverflowError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")
