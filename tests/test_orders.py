import pytest
from sqlalchemy import func, select

from chefhub.errors import Conflict, InvalidState, ValidationError
from chefhub.models import Notification, Order, OrderHistory, Review, User
from chefhub.services.notifications import NotificationService
from chefhub.services.orders import check_transition, update_order_status
from chefhub.services.push import MockPushGateway


def test_create_order_snapshot_and_total(place_order, chef, customer, db_session):
    data = place_order()
    assert data["status"] == "pending"
    assert data["user_id"] == customer.id
    assert data["to_id"] == chef.id
    assert data["total_amount"] == 24
    assert 10_000_000 <= data["order_no"] <= 99_999_999
    assert data["cart_items"][0]["name"] == "Lasagna"
    assert data["chef"]["id"] == chef.id

    order = db_session.get(Order, data["id"])
    assert (order.chef_lat, order.chef_lng) == (chef.current_lat, chef.current_lng)
    history = db_session.scalars(select(OrderHistory).where(OrderHistory.order_id == order.id)).all()
    assert [(h.status, h.actor_id) for h in history] == [("pending", customer.id)]


def test_order_lifecycle_credits_chef_and_allows_one_review(
    client, place_order, advance_order, customer_headers, chef, dish, db_session
):
    order_id = place_order()["id"]
    resp = advance_order(order_id, "accepted", "processing", "completed")
    assert resp.json()["data"]["status"] == "completed"

    review = client.post(
        f"/api/orders/{order_id}/review",
        json={"rating": 5, "detail": "Perfect", "dish_id": dish.id},
        headers=customer_headers,
    )
    assert review.status_code == 201
    assert review.json()["data"]["rest_id"] == chef.id

    again = client.post(f"/api/orders/{order_id}/review", json={"rating": 4}, headers=customer_headers)
    assert again.status_code == 400
    assert again.json()["message"] == "You have already reviewed this order"

    db_session.expire_all()
    assert db_session.get(User, chef.id).balance == 23
    statuses = db_session.scalars(
        select(OrderHistory.status).where(OrderHistory.order_id == order_id).order_by(OrderHistory.id)
    ).all()
    assert statuses == ["pending", "accepted", "processing", "completed"]
    assert db_session.scalar(select(func.count()).select_from(Review)) == 1


def test_terminal_status_cannot_change(client, place_order, advance_order, chef_headers, chef, db_session):
    order_id = place_order()["id"]
    advance_order(order_id, "accepted", "cancelled")

    resp = client.put(f"/api/chef/orders/{order_id}/status", json={"status": "processing"}, headers=chef_headers)
    assert resp.status_code == 400
    assert resp.json()["success"] is False

    db_session.expire_all()
    assert db_session.get(Order, order_id).status == "cancelled"
    assert db_session.get(User, chef.id).balance == 0


def test_completed_order_is_credited_once(client, place_order, advance_order, chef_headers, chef, db_session):
    order_id = place_order()["id"]
    advance_order(order_id, "accepted", "processing", "completed")
    resp = client.put(f"/api/chef/orders/{order_id}/status", json={"status": "completed"}, headers=chef_headers)
    assert resp.status_code == 400

    db_session.expire_all()
    assert db_session.get(User, chef.id).balance == 23


def _history_and_notifications(db_session, order_id):
    db_session.expire_all()
    history = db_session.scalar(
        select(func.count()).select_from(OrderHistory).where(OrderHistory.order_id == order_id)
    )
    notifications = db_session.scalar(
        select(func.count()).select_from(Notification).where(Notification.order_id == order_id)
    )
    return history, notifications


@pytest.mark.parametrize(
    "path,target",
    [
        (("accepted", "processing", "completed"), "cancelled"),
        (("accepted", "cancelled"), "cancelled"),
    ],
)
def test_refused_transition_writes_nothing(client, place_order, advance_order, chef_headers, path, target, db_session):
    order_id = place_order()["id"]
    advance_order(order_id, *path)
    before = _history_and_notifications(db_session, order_id)

    resp = client.put(f"/api/chef/orders/{order_id}/status", json={"status": target}, headers=chef_headers)
    assert resp.status_code == 400

    assert _history_and_notifications(db_session, order_id) == before
    assert db_session.get(Order, order_id).status == path[-1]


def test_pending_order_can_be_cancelled(place_order, advance_order, db_session):
    order_id = place_order()["id"]
    resp = advance_order(order_id, "cancelled")
    assert resp.json()["data"]["status"] == "cancelled"

    db_session.expire_all()
    statuses = db_session.scalars(
        select(OrderHistory.status).where(OrderHistory.order_id == order_id).order_by(OrderHistory.id)
    ).all()
    assert statuses == ["pending", "cancelled"]


def test_stale_status_loses_race(place_order, advance_order, chef, db_session):
    order_id = place_order()["id"]
    advance_order(order_id, "accepted")
    before = _history_and_notifications(db_session, order_id)

    # This session still believes the order is pending; the session does not
    # autoflush, so the guard passes while the database row says accepted.
    db_session.get(Order, order_id).status = "pending"
    notifier = NotificationService(db_session, MockPushGateway())

    with pytest.raises(Conflict):
        update_order_status(db_session, order_id, chef, "processing", notifier)

    assert _history_and_notifications(db_session, order_id) == before
    assert db_session.get(Order, order_id).status == "accepted"


def test_off_table_transition_is_accepted(place_order, advance_order, db_session):
    order_id = place_order()["id"]
    resp = advance_order(order_id, "completed")
    assert resp.json()["data"]["status"] == "completed"


def test_unknown_target_status_is_rejected(client, place_order, chef_headers):
    order_id = place_order()["id"]
    resp = client.put(f"/api/chef/orders/{order_id}/status", json={"status": "pending"}, headers=chef_headers)
    assert resp.status_code == 422
    assert "status" in resp.json()["errors"]


def test_other_chef_cannot_update(client, place_order, make_user, auth_for):
    order_id = place_order()["id"]
    other = make_user("chef")
    resp = client.put(f"/api/chef/orders/{order_id}/status", json={"status": "accepted"}, headers=auth_for(other))
    assert resp.status_code == 404


def test_customer_cannot_update_status(client, place_order, customer_headers):
    order_id = place_order()["id"]
    resp = client.put(f"/api/chef/orders/{order_id}/status", json={"status": "accepted"}, headers=customer_headers)
    assert resp.status_code == 403


def test_order_target_must_be_chef(client, customer_headers, order_payload, make_user):
    not_a_chef = make_user("customer")
    resp = client.post("/api/orders", json={**order_payload, "to_id": not_a_chef.id}, headers=customer_headers)
    assert resp.status_code == 404


def test_cart_dish_must_belong_to_chef(client, customer_headers, order_payload, make_user, make_dish):
    foreign = make_dish(make_user("chef"))
    payload = {**order_payload, "cart_items": [{"dish_id": foreign.id, "qty": 1, "price": 10}]}
    resp = client.post("/api/orders", json=payload, headers=customer_headers)
    assert resp.status_code == 422
    assert "cart_items" in resp.json()["errors"]


def test_cart_must_not_be_empty(client, customer_headers, order_payload):
    resp = client.post("/api/orders", json={**order_payload, "cart_items": []}, headers=customer_headers)
    assert resp.status_code == 422


def test_cart_snapshot_keeps_line_fields_only(place_order, dish, db_session):
    data = place_order(cart_items=[{"id": dish.id, "quantity": 3, "price": 9.5}])
    assert data["cart_items"] == [{"dish_id": dish.id, "name": "Lasagna", "qty": 3, "price": 9.5}]

    db_session.expire_all()
    assert db_session.get(Order, data["id"]).cart_items == data["cart_items"]


def test_review_requires_completed_order(client, place_order, customer_headers):
    order_id = place_order()["id"]
    resp = client.post(f"/api/orders/{order_id}/review", json={"rating": 5}, headers=customer_headers)
    assert resp.status_code == 404


def test_review_dish_must_be_in_cart(client, place_order, advance_order, customer_headers, chef, make_dish):
    order_id = place_order()["id"]
    advance_order(order_id, "accepted", "processing", "completed")
    other_dish = make_dish(chef, name="Tiramisu")
    resp = client.post(
        f"/api/orders/{order_id}/review",
        json={"rating": 3, "dish_id": other_dish.id},
        headers=customer_headers,
    )
    assert resp.status_code == 422
    assert "dish_id" in resp.json()["errors"]


def test_review_rating_bounds(client, place_order, advance_order, customer_headers):
    order_id = place_order()["id"]
    advance_order(order_id, "accepted", "processing", "completed")
    resp = client.post(f"/api/orders/{order_id}/review", json={"rating": 6}, headers=customer_headers)
    assert resp.status_code == 422


def test_order_details_for_participants(
    client, place_order, advance_order, customer_headers, chef_headers, make_user, auth_for
):
    order_id = place_order()["id"]
    advance_order(order_id, "accepted")

    resp = client.get(f"/api/orders/{order_id}", headers=customer_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert 2 < data["distance"] < 3
    assert data["has_review"] is False
    assert data["review"] is None
    assert [h["status"] for h in data["history"]] == ["pending", "accepted"]
    assert data["chef"]["rating"] == 0

    assert client.get(f"/api/orders/{order_id}", headers=chef_headers).status_code == 200
    outsider = auth_for(make_user("customer"))
    assert client.get(f"/api/orders/{order_id}", headers=outsider).status_code == 404


def test_order_details_include_review(client, place_order, advance_order, customer_headers):
    order_id = place_order()["id"]
    advance_order(order_id, "accepted", "processing", "completed")
    client.post(f"/api/orders/{order_id}/review", json={"rating": 4, "detail": "Good"}, headers=customer_headers)

    data = client.get(f"/api/orders/{order_id}", headers=customer_headers).json()["data"]
    assert data["has_review"] is True
    assert data["review"]["rating"] == 4
    assert data["chef"]["rating"] == 4.0
    assert data["chef"]["reviews_count"] == 1


def test_customer_order_listing_filter_and_sort(client, place_order, advance_order, customer_headers):
    first = place_order()["id"]
    second = place_order(address="2 Main St")["id"]
    advance_order(first, "accepted")

    newest = client.get("/api/orders", headers=customer_headers).json()["data"]
    assert [o["id"] for o in newest["items"]] == [second, first]

    oldest = client.get("/api/orders", params={"sort": "oldest"}, headers=customer_headers).json()["data"]
    assert [o["id"] for o in oldest["items"]] == [first, second]

    accepted = client.get("/api/orders", params={"status": "accepted"}, headers=customer_headers).json()["data"]
    assert [o["id"] for o in accepted["items"]] == [first]
    assert accepted["items"][0]["chef"]["name"] == "Charlie Chef"


def test_chef_order_listing(client, place_order, chef_headers, customer):
    order_id = place_order()["id"]
    data = client.get("/api/chef/orders", params={"status": "pending"}, headers=chef_headers).json()["data"]
    assert data["total"] == 1
    assert data["items"][0]["id"] == order_id
    assert data["items"][0]["customer"]["id"] == customer.id


def test_cannot_order_from_yourself(client, chef, chef_headers, order_payload):
    resp = client.post("/api/orders", json=order_payload, headers=chef_headers)
    assert resp.status_code == 422
    assert "to_id" in resp.json()["errors"]


@pytest.mark.parametrize(
    "current,new_status",
    [
        ("pending", "accepted"),
        ("pending", "rejected"),
        ("accepted", "processing"),
        ("processing", "completed"),
        ("rejected", "accepted"),
    ],
)
def test_check_transition_allows(current, new_status):
    check_transition(current, new_status)


@pytest.mark.parametrize("current", ["completed", "cancelled"])
@pytest.mark.parametrize("new_status", ["accepted", "cancelled", "completed"])
def test_check_transition_blocks_terminal(current, new_status):
    with pytest.raises(InvalidState):
        check_transition(current, new_status)


def test_check_transition_rejects_unknown_target():
    with pytest.raises(ValidationError):
        check_transition("pending", "pending")
