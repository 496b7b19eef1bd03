"""
Test helpers: actors, tokens and payload builders
"""

from datetime import date, timedelta

from orderledger.auth.auth_handler import Actor, AuthHandler

FACILITY_ADDRESS = {"street": "12 Ocean Pkwy", "city": "Brooklyn", "state": "NY", "zip_code": "11218"}


def make_headers(user_id: str, role: str, facility_id: str = None) -> dict:
    claims = {"sub": user_id, "role": role}
    if facility_id:
        claims["facility_id"] = facility_id
    token = AuthHandler().create_access_token(claims)
    return {"Authorization": f"Bearer {token}"}


def platform_admin() -> Actor:
    return Actor.for_role("admin-1", "admin")


def facility_admin(facility_id: str) -> Actor:
    return Actor.for_role("nh-admin-1", "nursing_home_admin", facility_id)


def facility_user(facility_id: str, user_id: str = "nh-user-1") -> Actor:
    return Actor.for_role(user_id, "nursing_home_user", facility_id)


def future_monday(weeks_ahead: int = 3) -> date:
    today = date.today()
    return today + timedelta(days=(7 - today.weekday()) + 7 * weeks_ahead)


def resident(resident_id: str = "res-1", meals=None) -> dict:
    return {
        "resident_id": resident_id,
        "resident_name": "Miriam Katz",
        "room_number": "204B",
        "meals": meals if meals is not None else [
            {"day": "Monday", "meal_type": "breakfast", "items": [{"id": "item-eggs"}]},
            {"day": "Monday", "meal_type": "lunch", "items": [{"id": "item-soup"}]},
        ],
    }
