import pytest

from chefhub.models import Cuisine, Review

NEAR = (40.7306, -73.9866)
JFK = (40.6413, -73.7781)


@pytest.fixture
def chefs(chef, make_user):
    near = make_user("chef", first_name="Nadia", last_name="Near", current_lat=NEAR[0], current_lng=NEAR[1])
    far = make_user("chef", first_name="Frank", last_name="Far", current_lat=JFK[0], current_lng=JFK[1])
    return chef, near, far


def _search(client, headers, **params):
    resp = client.get("/api/chefs", params=params, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


def _ids(data):
    return [c["id"] for c in data["items"]]


def _review(db_session, author, chef, rating, dish=None):
    db_session.add(
        Review(user_id=author.id, order_id=1, rest_id=chef.id, dish_id=dish.id if dish else None,
               rating=rating, detail="", gallery=[])
    )
    db_session.commit()


def test_lists_only_chefs(client, customer_headers, chefs):
    data = _search(client, customer_headers)
    assert _ids(data) == [c.id for c in chefs]
    assert data["total"] == 3
    assert all(c["distance"] is None for c in data["items"])


def test_radius_filter_and_distance_sort(client, customer_headers, chefs):
    chef, near, far = chefs
    data = _search(
        client, customer_headers,
        current_lat=NEAR[0], current_lng=NEAR[1], sort_by="distance",
    )
    assert _ids(data) == [near.id, chef.id]
    assert data["items"][0]["distance"] == 0
    assert 2 < data["items"][1]["distance"] < 3

    wide = _search(client, customer_headers, current_lat=NEAR[0], current_lng=NEAR[1], radius=50, sort_by="distance")
    assert _ids(wide) == [near.id, chef.id, far.id]


def test_coordinates_must_be_sent_together(client, customer_headers):
    resp = client.get("/api/chefs", params={"current_lat": 40.7}, headers=customer_headers)
    assert resp.status_code == 422


def test_open_now_filter(client, customer_headers, chefs, db_session):
    chef, near, far = chefs
    near.rest_status = "busy"
    db_session.commit()
    assert _ids(_search(client, customer_headers, filter="open_now")) == [chef.id, far.id]


def test_cuisine_filter(client, customer_headers, chefs, make_dish, db_session):
    chef, near, far = chefs
    thai = Cuisine(name="Thai")
    db_session.add(thai)
    db_session.commit()
    make_dish(chef)
    make_dish(near, name="Pad Thai", cuisine_id=thai.id)
    make_dish(near, name="Green Curry", cuisine_id=thai.id)

    assert _ids(_search(client, customer_headers, cuisine_id=thai.id)) == [near.id]


def test_popular_filter_orders_by_completed_orders(
    client, customer_headers, chefs, make_dish, place_order, advance_order, auth_for
):
    chef, near, far = chefs
    dish = make_dish(far, name="Bagel")
    order = place_order(to_id=far.id, cart_items=[{"dish_id": dish.id, "qty": 1, "price": 10}])
    advance_order(order["id"], "accepted", "processing", "completed", headers=auth_for(far))

    assert _ids(_search(client, customer_headers, filter="popular"))[0] == far.id


def test_top_rated_and_rating_sort(client, customer, customer_headers, chefs, db_session):
    chef, near, far = chefs
    _review(db_session, customer, near, 5)
    _review(db_session, customer, chef, 3)

    data = _search(client, customer_headers, filter="top_rated")
    assert _ids(data) == [near.id, chef.id, far.id]
    assert data["items"][0]["rating"] == 5.0
    assert data["items"][0]["reviews_count"] == 1
    assert data["items"][2]["rating"] == 0

    assert _ids(_search(client, customer_headers, sort_by="rating")) == [near.id, chef.id, far.id]


def test_price_sorts(client, customer_headers, chefs, make_dish):
    chef, near, far = chefs
    make_dish(chef, price=10.0)
    make_dish(near, price=5.0)
    make_dish(near, price=30.0)

    assert _ids(_search(client, customer_headers, sort_by="price_low")) == [near.id, chef.id, far.id]
    assert _ids(_search(client, customer_headers, sort_by="price_high")) == [near.id, chef.id, far.id]


def test_combined_filters(client, customer, customer_headers, chefs, make_dish, db_session):
    chef, near, far = chefs
    make_dish(chef, price=12.0)
    make_dish(near, price=8.0)
    _review(db_session, customer, chef, 4)
    _review(db_session, customer, chef, 5)
    _review(db_session, customer, near, 2)

    data = _search(
        client, customer_headers,
        filter=["top_rated", "open_now", "popular"],
        sort_by="price_low",
        current_lat=NEAR[0], current_lng=NEAR[1],
    )
    assert _ids(data) == [chef.id, near.id]
    assert data["items"][0]["rating"] == 4.5
    assert data["items"][0]["reviews_count"] == 2


def test_is_liked_reflects_viewer(client, customer_headers, chefs, make_user, auth_for):
    chef, near, far = chefs
    assert client.post(f"/api/chefs/{near.id}/like", headers=customer_headers).json()["data"]["is_liked"] is True

    liked = {c["id"]: c["is_liked"] for c in _search(client, customer_headers)["items"]}
    assert liked == {chef.id: False, near.id: True, far.id: False}

    other_viewer = auth_for(make_user("customer"))
    assert not any(c["is_liked"] for c in _search(client, other_viewer)["items"])


def test_search_pagination(client, customer_headers, chefs):
    data = _search(client, customer_headers, per_page=2, page=2)
    assert data["total"] == 3
    assert len(data["items"]) == 1


def test_home_feed(client, customer, customer_headers, chef, dish, cuisine, place_order, advance_order, db_session):
    order_id = place_order()["id"]
    advance_order(order_id, "accepted", "processing", "completed")
    _review(db_session, customer, chef, 4, dish=dish)

    resp = client.get("/api/home", headers=customer_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert [c["name"] for c in data["cuisines"]] == ["Italian"]
    assert [o["id"] for o in data["recent_orders"]] == [order_id]
    assert data["top_chefs"][0]["id"] == chef.id
    assert data["top_chefs"][0]["completed_orders"] == 1
    assert data["popular_dishes"][0]["id"] == dish.id
    assert data["popular_dishes"][0]["rating"] == 4.0
    assert data["popular_dishes"][0]["chef"]["id"] == chef.id


def test_home_recent_orders_limited_to_five(client, customer_headers, place_order):
    for _ in range(6):
        place_order()
    data = client.get("/api/home", headers=customer_headers).json()["data"]
    assert len(data["recent_orders"]) == 5
