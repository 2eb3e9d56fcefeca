from datetime import date, timedelta
from typing import Tuple

# ========== Text formatting for emails ==========

DIVIDER_FULL = "=" * 40
DIVIDER_HALF = "-" * 20

UTILITY_LABELS = {
    "electricity": "Electricity",
    "water": "Water",
    "gas": "Gas",
    "internet": "Internet",
    "maintenance": "Maintenance",
    "floor_heating": "Floor heating",
    "car_charging": "Car charging",
}


def format_amount(amount: float) -> str:
    """Format amount with currency symbol"""
    if amount is None:
        return "—"
    return f"${amount:,.2f}"

def format_date(date_obj) -> str:
    if not date_obj:
        return "—"
    return date_obj.strftime("%d %b %Y")

def format_period(start: date, end: date) -> str:
    return f"{format_date(start)} - {format_date(end)}"

def get_utility_label(utility_type: str) -> str:
    return UTILITY_LABELS.get(utility_type, utility_type.replace("_", " ").title())


# ========== Calendar helpers ==========

def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last day of a calendar month."""
    first = date(year, month, 1)
    next_month = (first + timedelta(days=32)).replace(day=1)
    return first, next_month - timedelta(days=1)

def is_last_day_of_month(day: date) -> bool:
    return (day + timedelta(days=1)).day == 1
