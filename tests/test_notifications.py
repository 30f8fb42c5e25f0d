from sqlalchemy import select

from chefhub.main import app
from chefhub.models import Device, Notification, Order
from chefhub.services.push import get_push_gateway


def _notifications(client, headers, **params):
    resp = client.get("/api/notifications", params=params, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


def test_order_events_reach_the_right_audience(
    client, place_order, advance_order, customer, chef, customer_headers, chef_headers, db_session
):
    order_id = place_order()["id"]
    advance_order(order_id, "accepted")

    chef_feed = _notifications(client, chef_headers)
    assert [n["title"] for n in chef_feed["items"]] == ["New Order Received"]
    assert chef_feed["items"][0]["order_id"] == order_id

    customer_feed = _notifications(client, customer_headers)
    assert [n["title"] for n in customer_feed["items"]] == ["Order Status Updated"]
    order_no = db_session.get(Order, order_id).order_no
    assert customer_feed["items"][0]["body"] == f"Your order #{order_no} has been accepted"

    rows = db_session.scalars(select(Notification).order_by(Notification.id)).all()
    assert (rows[0].rest_id, rows[0].user_id) == (chef.id, None)
    assert (rows[1].user_id, rows[1].rest_id) == (customer.id, None)


def test_chef_who_orders_sees_both_sides(client, place_order, advance_order, make_user, auth_for, chef_headers):
    buyer_headers = auth_for(make_user("chef"))
    order_id = place_order(headers=buyer_headers)["id"]
    advance_order(order_id, "accepted")

    feed = _notifications(client, buyer_headers)
    assert [n["title"] for n in feed["items"]] == ["Order Status Updated"]
    assert feed["unseen_count"] == 1
    assert [n["title"] for n in _notifications(client, chef_headers)["items"]] == ["New Order Received"]


def test_mark_as_seen_and_unseen_count(client, place_order, advance_order, customer_headers):
    order_id = place_order()["id"]
    advance_order(order_id, "accepted", "processing")

    first = _notifications(client, customer_headers, mark_as_seen=True)
    assert first["total"] == 2
    assert [n["seen"] for n in first["items"]] == [False, False]
    assert first["unseen_count"] == 0

    second = _notifications(client, customer_headers)
    assert [n["seen"] for n in second["items"]] == [True, True]


def test_filters_and_newest_first(client, place_order, advance_order, customer_headers):
    order_id = place_order()["id"]
    advance_order(order_id, "accepted", "processing")
    _notifications(client, customer_headers, mark_as_seen=True, per_page=1)

    data = _notifications(client, customer_headers)
    assert [n["body"].split()[-1] for n in data["items"]] == ["prepared", "accepted"]
    assert data["unseen_count"] == 1

    unseen = _notifications(client, customer_headers, seen=False)
    assert [n["body"].split()[-1] for n in unseen["items"]] == ["accepted"]
    assert _notifications(client, customer_headers, type="news")["total"] == 0


def test_order_push_goes_to_registered_devices(client, place_order, chef, db_session, push_gateway):
    db_session.add(Device(user_id=chef.id, platform="ios", registration_id="chef-ios-token", model="iPhone"))
    db_session.commit()

    order_id = place_order()["id"]
    assert len(push_gateway.sent) == 1
    push = push_gateway.sent[0]
    assert push.target == "chef-ios-token"
    assert push.title == "New Order Received"
    assert push.data["type"] == "order"
    assert push.data["order_id"] == str(order_id)
    assert push.data["event"] == "new_order"


class _BrokenGateway:
    def send(self, target, title, body, data=None):
        raise RuntimeError("push service down")

    def send_batch(self, tokens, title, body, data=None):
        raise RuntimeError("push service down")


def test_push_failure_does_not_fail_order(client, chef, customer_headers, order_payload, db_session):
    db_session.add(Device(user_id=chef.id, platform="android", registration_id="token", model="Pixel"))
    db_session.commit()
    app.dependency_overrides[get_push_gateway] = lambda: _BrokenGateway()

    resp = client.post("/api/orders", json=order_payload, headers=customer_headers)
    assert resp.status_code == 201
    db_session.expire_all()
    assert db_session.scalar(select(Notification.title)) == "New Order Received"
