"""
Pure helpers for nursing home orders: submission deadline and order totals
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Iterable, Union

from orderledger.config import DEADLINE_HOUR, DEADLINE_MINUTE, MEAL_PRICES, TAX_RATE
from orderledger.schemas.nursing_home_order import ResidentMeals, OrderTotals
from orderledger.utils.money import to_money


def calculate_deadline(week_start_date: Union[date, datetime]) -> datetime:
    """
    Submission cutoff for a service week: the Sunday noon immediately
    before the week's Monday start, as local wall-clock time.
    """
    if isinstance(week_start_date, datetime):
        week_start_date = week_start_date.date()
    sunday = week_start_date - timedelta(days=1)
    return datetime.combine(sunday, time(DEADLINE_HOUR, DEADLINE_MINUTE))


def calculate_order_totals(resident_meals: Iterable[ResidentMeals]) -> OrderTotals:
    """
    Sum a weekly order. Meals are priced by meal type, not by the items
    chosen within them; every amount is rounded to cents on its own.
    """
    total_meals = 0
    subtotal = Decimal("0")

    for resident in resident_meals:
        for meal in resident.meals:
            total_meals += 1
            subtotal += MEAL_PRICES[meal.meal_type.value]

    subtotal = to_money(subtotal)
    tax = to_money(subtotal * TAX_RATE)
    total = to_money(subtotal + tax)

    return OrderTotals(
        total_meals=total_meals,
        subtotal=subtotal,
        tax=tax,
        total=total
    )
