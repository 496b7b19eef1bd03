"""
API tests for gift card, settlement and nursing home order endpoints
Exercises routing, auth and error rendering end to end
"""

from datetime import timedelta

from tests.helpers import FACILITY_ADDRESS, future_monday, make_headers, resident

ADMIN = make_headers("admin-1", "admin")
CUSTOMER = make_headers("user-1", "user")

GIFT_CARDS = "/api/v1/admin/gift-cards"
ORDERS = "/api/v1/nursing-homes/orders"


def issue_card(client, amount=50.00, **extra):
    response = client.post(f"{GIFT_CARDS}/", json={"initial_balance": amount, **extra}, headers=ADMIN)
    assert response.status_code == 201
    return response.json()


def order_payload(facility_id, week_start=None, meals=None):
    week_start = week_start or future_monday()
    return {
        "facility_id": facility_id,
        "week_start_date": week_start.isoformat(),
        "week_end_date": (week_start + timedelta(days=6)).isoformat(),
        "resident_meals": [resident(meals=meals)],
        "delivery_address": FACILITY_ADDRESS,
    }


class TestHealth:
    def test_health(self, client):
        """Test the health endpoint"""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestAdminGiftCards:
    """Admin gift card management"""

    def test_create_gift_card(self, client):
        """Test manual issuance normalizes money and email"""
        data = issue_card(client, "25.005", recipient_email="Friend@Example.com")

        assert data["balance"] == 25.01
        assert data["initial_balance"] == 25.01
        assert data["status"] == "active"
        assert data["recipient_email"] == "friend@example.com"
        assert data["code"].startswith("MKD-")

    def test_create_rejects_zero_balance(self, client):
        """Test that a zero balance is rejected at the boundary"""
        response = client.post(f"{GIFT_CARDS}/", json={"initial_balance": 0}, headers=ADMIN)
        assert response.status_code == 422

    def test_list_and_get(self, client):
        """Test pagination and lookup by id"""
        first = issue_card(client, 10)
        issue_card(client, 20)
        issue_card(client, 30)

        response = client.get(f"{GIFT_CARDS}/?page=1&page_size=2", headers=ADMIN)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert data["total_pages"] == 2
        assert len(data["gift_cards"]) == 2

        response = client.get(f"{GIFT_CARDS}/{first['id']}", headers=ADMIN)
        assert response.status_code == 200
        assert response.json()["code"] == first["code"]

    def test_get_missing_card(self, client):
        """Test that an unknown id renders the error envelope"""
        response = client.get(f"{GIFT_CARDS}/nope", headers=ADMIN)
        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "NOT_FOUND"
        assert error["request_id"]

    def test_patch_void_reinstate_and_balance(self, client):
        """Test administrative overrides keep status consistent with balance"""
        card = issue_card(client, 40)

        response = client.patch(f"{GIFT_CARDS}/{card['id']}", json={"status": "void"}, headers=ADMIN)
        assert response.json()["status"] == "void"

        response = client.patch(f"{GIFT_CARDS}/{card['id']}", json={"status": "active"}, headers=ADMIN)
        assert response.json()["status"] == "active"

        response = client.patch(f"{GIFT_CARDS}/{card['id']}", json={"balance": 0}, headers=ADMIN)
        assert response.json()["status"] == "used"
        assert response.json()["balance"] == 0

    def test_patch_rejects_used_status(self, client):
        """Test that used can only be reached through the balance"""
        card = issue_card(client, 40)
        response = client.patch(f"{GIFT_CARDS}/{card['id']}", json={"status": "used"}, headers=ADMIN)
        assert response.status_code == 422

    def test_patch_balance_above_initial(self, client):
        """Test that the balance cannot exceed the initial balance"""
        card = issue_card(client, 40)
        response = client.patch(f"{GIFT_CARDS}/{card['id']}", json={"balance": 40.01}, headers=ADMIN)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_FAILED"

    def test_deduct(self, client):
        """Test redemption returns the remaining balance"""
        card = issue_card(client, 40)
        response = client.post(f"{GIFT_CARDS}/{card['id']}/deduct", json={"amount": 15.25}, headers=ADMIN)
        assert response.status_code == 200
        assert response.json() == {"gift_card_id": card["id"], "balance": 24.75}

    def test_deduct_insufficient_balance(self, client):
        """Test that overdrawing is a conflict and leaves the balance alone"""
        card = issue_card(client, 10)
        response = client.post(f"{GIFT_CARDS}/{card['id']}/deduct", json={"amount": 10.01}, headers=ADMIN)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "INSUFFICIENT_BALANCE"
        assert client.get(f"{GIFT_CARDS}/{card['id']}", headers=ADMIN).json()["balance"] == 10

    def test_delete_voids(self, client):
        """Test that delete voids instead of removing"""
        card = issue_card(client, 10)
        response = client.delete(f"{GIFT_CARDS}/{card['id']}", headers=ADMIN)
        assert response.json() == {"message": "Gift card voided"}

        response = client.post(f"{GIFT_CARDS}/{card['id']}/deduct", json={"amount": 1}, headers=ADMIN)
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "GIFT_CARD_NOT_ACTIVE"

    def test_customer_forbidden(self, client):
        """Test that customers cannot reach admin endpoints"""
        response = client.get(f"{GIFT_CARDS}/", headers=CUSTOMER)
        assert response.status_code == 403

    def test_missing_token(self, client):
        """Test that admin endpoints require a token"""
        response = client.get(f"{GIFT_CARDS}/")
        assert response.status_code in (401, 403)

    def test_bad_token(self, client):
        """Test that an unverifiable token is rejected with 401"""
        response = client.get(f"{GIFT_CARDS}/", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401


class TestCustomerGiftCards:
    """Checkout validation and customer listing"""

    def test_validate_code(self, client):
        """Test that a typed code is normalized before lookup"""
        card = issue_card(client, 30)
        response = client.post("/api/v1/gift-cards/validate", json={"code": card["code"].lower()})

        assert response.status_code == 200
        assert response.json() == {"valid": True, "gift_card_id": card["id"], "code": card["code"], "balance": 30.0}

    def test_validate_unknown_code(self, client):
        """Test that an unknown code does not validate"""
        response = client.post("/api/v1/gift-cards/validate", json={"code": "MKD-ZZZZZZZZ"})
        assert response.status_code == 404

    def test_validate_spent_card(self, client):
        """Test that a fully used card no longer validates"""
        card = issue_card(client, 5)
        client.post(f"{GIFT_CARDS}/{card['id']}/deduct", json={"amount": 5}, headers=ADMIN)

        response = client.post("/api/v1/gift-cards/validate", json={"code": card["code"]})
        assert response.status_code == 404

    def test_my_gift_cards(self, client):
        """Test that customers only see cards they bought"""
        issue_card(client, 15, purchased_by_user_id="user-1")
        issue_card(client, 15, purchased_by_user_id="user-2")

        response = client.get("/api/v1/gift-cards/mine", headers=CUSTOMER)
        assert response.status_code == 200
        assert [c["purchased_by_user_id"] for c in response.json()] == ["user-1"]


class TestSettlementEndpoint:
    """Payment succeeded events"""

    def test_settle_paid_orders(self, client):
        """Test redemption and issuance in one event"""
        applied = issue_card(client, 20)
        event = {
            "orders": [{
                "id": "order-77",
                "user_id": "user-1",
                "applied_gift_card": {"gift_card_id": applied["id"], "amount_applied": 12.5},
                "restaurant_groups": {
                    "bakery": {"items": [
                        {"id": "gift-card-50", "name": "$50 Gift Card", "price": 100.00, "quantity": 2},
                        {"id": "bagel-1", "name": "Bagel", "price": 3.5, "quantity": 1},
                    ]}
                }
            }]
        }

        response = client.post("/api/v1/payments/settlements", json=event, headers=ADMIN)
        assert response.status_code == 200

        result = response.json()["results"][0]
        assert result["order_id"] == "order-77"
        assert result["gift_card_deducted"] is True
        assert result["remaining_balance"] == 7.5
        assert [c["balance"] for c in result["issued_cards"]] == [50.0, 50.0]

        mine = client.get("/api/v1/gift-cards/mine", headers=CUSTOMER).json()
        assert len(mine) == 2

    def test_malformed_order_does_not_block_event(self, client):
        """Test that a bad order in the event is skipped and the rest are settled"""
        applied = issue_card(client, 40)
        event = {
            "orders": [
                {"id": "order-1", "applied_gift_card": {"gift_card_id": applied["id"], "amount_applied": 10}},
                {"restaurant_groups": "not-a-mapping"},
                {"id": "order-3", "applied_gift_card": {"amount_applied": 5}},
            ]
        }

        response = client.post("/api/v1/payments/settlements", json=event, headers=ADMIN)
        assert response.status_code == 200

        results = response.json()["results"]
        assert [r["order_id"] for r in results] == ["order-1", "order-3"]
        assert results[0]["remaining_balance"] == 30.0
        assert results[1]["gift_card_deducted"] is False

    def test_empty_event_rejected(self, client):
        """Test that an event without orders is rejected"""
        response = client.post("/api/v1/payments/settlements", json={"orders": []}, headers=ADMIN)
        assert response.status_code == 422

    def test_customer_cannot_settle(self, client):
        """Test that customers cannot post settlement events"""
        response = client.post("/api/v1/payments/settlements", json={"orders": [{"id": "x"}]}, headers=CUSTOMER)
        assert response.status_code == 403


class TestNursingHomeOrders:
    """Weekly order flow over HTTP"""

    def test_order_lifecycle(self, client, facility):
        """Test create, edit, submit and cancel"""
        user = make_headers("nh-user-1", "nursing_home_user", facility.id)
        nh_admin = make_headers("nh-admin-1", "nursing_home_admin", facility.id)

        response = client.post(ORDERS, json=order_payload(facility.id), headers=user)
        assert response.status_code == 201
        order = response.json()
        assert order["status"] == "draft"
        assert order["total_meals"] == 2
        assert order["total"] == 39.2

        dinner = [{"day": "Thursday", "meal_type": "dinner", "items": [{"id": "brisket"}]}]
        response = client.put(f"{ORDERS}/{order['id']}", json={"resident_meals": [resident(meals=dinner)]}, headers=user)
        assert response.status_code == 200
        assert response.json()["subtotal"] == 23.0

        response = client.post(f"{ORDERS}/{order['id']}/submit", headers=user)
        assert response.status_code == 200
        assert response.json()["status"] == "submitted"
        assert response.json()["submitted_at"] is not None

        response = client.post(f"{ORDERS}/{order['id']}/submit", headers=user)
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "ALREADY_SUBMITTED"

        response = client.put(f"{ORDERS}/{order['id']}", json={"resident_meals": [resident()]}, headers=user)
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "ORDER_LOCKED"

        response = client.delete(f"{ORDERS}/{order['id']}", headers=user)
        assert response.status_code == 403

        response = client.delete(f"{ORDERS}/{order['id']}", headers=nh_admin)
        assert response.json() == {"message": "Order cancelled successfully"}

        response = client.get(f"{ORDERS}/{order['id']}", headers=nh_admin)
        assert response.json()["status"] == "cancelled"

    def test_list_orders_scoped_to_facility(self, client, facility, other_facility):
        """Test that order listings follow the caller's facility"""
        admin_here = make_headers("nh-admin-1", "nursing_home_admin", facility.id)
        client.post(ORDERS, json=order_payload(facility.id), headers=admin_here)
        client.post(ORDERS, json=order_payload(other_facility.id), headers=ADMIN)

        response = client.get(ORDERS, headers=admin_here)
        assert response.status_code == 200
        assert response.json()["total"] == 1

        response = client.get(f"{ORDERS}?facility_id={other_facility.id}", headers=ADMIN)
        assert response.json()["total"] == 1

    def test_invalid_meal_type(self, client, facility):
        """Test that unknown meal types never reach pricing"""
        meals = [{"day": "Monday", "meal_type": "brunch", "items": [{"id": "x"}]}]
        response = client.post(ORDERS, json=order_payload(facility.id, meals=meals), headers=ADMIN)
        assert response.status_code == 422

    def test_week_must_start_on_monday(self, client, facility):
        """Test that a week starting on a Tuesday is rejected"""
        payload = order_payload(facility.id, week_start=future_monday() + timedelta(days=1))
        response = client.post(ORDERS, json=payload, headers=ADMIN)
        assert response.status_code == 422

    def test_other_facility_forbidden(self, client, facility, other_facility):
        """Test that staff cannot order for another facility"""
        user = make_headers("nh-user-1", "nursing_home_user", facility.id)
        response = client.post(ORDERS, json=order_payload(other_facility.id), headers=user)
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "ACCESS_DENIED"

    def test_customer_forbidden(self, client, facility):
        """Test that storefront customers cannot reach nursing home orders"""
        response = client.get(ORDERS, headers=CUSTOMER)
        assert response.status_code == 403
