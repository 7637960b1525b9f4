"""Shared utility functions for blueprints and services."""
from datetime import date, datetime


def parse_date_input(value):
    """Parse a date string (YYYY-MM-DD or DD.MM.YYYY), raising ValueError on bad input.

    Empty input returns None so optional date fields can be cleared.
    """
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except ValueError:
        try:
            return datetime.strptime(value, "%d.%m.%Y").date()
        except ValueError as exc:
            raise ValueError(
                "Invalid date format. Use YYYY-MM-DD or DD.MM.YYYY."
            ) from exc
