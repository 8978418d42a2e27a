# test_order_flow_e2e.py
from datetime import datetime, timedelta, timezone

from roms.util.security import create_token


def jprint(step, r):
    """Helper to print response and assert on failure."""
    assert 200 <= r.status_code < 300, f"{step} -> {r.status_code}: {r.text}"
    return r.json() if r.headers.get("content-type","").startswith("application/json") else r.text

def expect_error(step, r, status, code):
    assert r.status_code == status, f"{step} -> {r.status_code}: {r.text}"
    assert r.json()["code"] == code, f"{step} -> {r.text}"


def test_customer_order_flow(client, base_url, auth_headers, other_headers, staff_headers, customer_id, rng_suffix):
    # ===== 1. Menu =====
    r = client.post(f"{base_url}/menu/items", headers=auth_headers, json={
        "name": f"Burger-{rng_suffix}", "category": f"Mains-{rng_suffix}", "price": 200,
    })
    assert r.status_code == 403, "customers cannot edit the menu"

    r = client.post(f"{base_url}/menu/items", headers=staff_headers, json={
        "name": f"Burger-{rng_suffix}", "category": f"Mains-{rng_suffix}", "price": 200,
        "details": "double patty", "imageUrl": "https://cdn.example.com/burger.png",
    })
    burger = jprint("POST /menu/items (burger)", r)
    assert burger["image_url"] == "https://cdn.example.com/burger.png"

    r = client.post(f"{base_url}/menu/items", headers=staff_headers, json={
        "name": f"Fries-{rng_suffix}", "category": f"Sides-{rng_suffix}", "price": 150, "img": "fries.png",
    })
    fries = jprint("POST /menu/items (fries)", r)
    assert fries["image_url"] == "fries.png"

    r = client.post(f"{base_url}/menu/items", headers=staff_headers, json={
        "name": f"Broken-{rng_suffix}", "category": "x", "price": -1,
    })
    assert r.status_code == 422

    items = jprint("GET /menu/items?category", client.get(f"{base_url}/menu/items",
                                                          params={"category": f"mains-{rng_suffix}"}))
    assert [i["id"] for i in items] == [burger["id"]]
    items = jprint("GET /menu/items?search", client.get(f"{base_url}/menu/items",
                                                        params={"search": f"fries-{rng_suffix}"}))
    assert [i["id"] for i in items] == [fries["id"]]

    # ===== 2. Cart quotes =====
    cart = [
        {"item_id": burger["id"], "name": "Burger", "unit_price": 200, "quantity": 2},
        {"item_id": fries["id"], "name": "Fries", "unit_price": 150, "quantity": 1},
    ]
    coupons = jprint("GET /cart/coupons", client.get(f"{base_url}/cart/coupons"))
    assert {c["code"] for c in coupons} == {"SAVE10", "FOODIE5", "PIZZA25"}

    q = jprint("POST /cart/quote", client.post(f"{base_url}/cart/quote", json={"items": cart}))
    assert q["breakdown"] == {"subtotal": 550, "delivery_fee": 0, "discount": 0, "tax": 28, "total": 578}
    assert q["total_quantity"] == 3

    q = jprint("POST /cart/quote (SAVE10)", client.post(f"{base_url}/cart/quote",
                                                         json={"items": cart, "coupon_code": "save10"}))
    assert q["coupon"]["code"] == "SAVE10"
    assert q["breakdown"]["total"] == 568

    q = jprint("POST /cart/quote (bogus)", client.post(f"{base_url}/cart/quote",
                                                        json={"items": cart, "coupon_code": "BOGUS"}))
    assert q["coupon"] is None
    assert q["coupon_error"] == "Invalid coupon code"
    assert q["breakdown"]["total"] == 578

    q = jprint("POST /cart/quote (small)", client.post(f"{base_url}/cart/quote", json={
        "items": [{"item_id": "pizza", "name": "Pizza", "unit_price": 300, "quantity": 1}]}))
    assert q["breakdown"]["delivery_fee"] == 50
    assert q["breakdown"]["total"] == 365

    r = client.post(f"{base_url}/cart/quote", json={
        "items": [{"item_id": "pizza", "name": "Pizza", "unit_price": 300, "quantity": 0}]})
    expect_error("POST /cart/quote (qty 0)", r, 400, "INVALID_ARGUMENT")

    # ===== 3. Place =====
    lines = [{"item_id": burger["id"], "quantity": 2, "notes": "no onions"},
             {"item_id": fries["id"], "quantity": 1}]

    assert client.post(f"{base_url}/orders/", json={"items": lines}).status_code == 401

    r = client.post(f"{base_url}/orders/", headers=auth_headers, json={"items": lines, "coupon_code": "NOPE"})
    expect_error("POST /orders (bad coupon)", r, 400, "INVALID_COUPON")

    r = client.post(f"{base_url}/orders/", headers=auth_headers, json={"items": []})
    expect_error("POST /orders (empty)", r, 400, "EMPTY_ORDER")

    r = client.post(f"{base_url}/orders/", headers=auth_headers, json={
        "items": lines, "delivery_address": "12 Baker St", "phone": "5550100",
    })
    assert r.status_code == 201
    order = r.json()
    assert order["status"] == "Placed"
    assert order["user_id"] == customer_id
    assert (order["subtotal"], order["tax"], order["total"]) == (550, 28, 578)
    assert order["items"][0]["notes"] == "no onions"

    r = client.post(f"{base_url}/orders/", headers=auth_headers, json={
        "items": lines, "coupon_code": "save10", "payment_method": "card", "payment_captured": True,
    })
    paid = jprint("POST /orders (SAVE10)", r)
    assert paid["coupon_code"] == "SAVE10"
    assert paid["total"] == 568

    later = (datetime.now(timezone.utc) + timedelta(hours=2)).isoformat()
    scheduled = jprint("POST /orders (scheduled)", client.post(
        f"{base_url}/orders/", headers=auth_headers, json={"items": lines, "scheduled_for": later}))
    assert scheduled["status"] == "Scheduled"

    # ===== 4. Read access =====
    jprint("GET /orders/{id}", client.get(f"{base_url}/orders/{order['id']}", headers=auth_headers))
    jprint("GET /orders/{id} (staff)", client.get(f"{base_url}/orders/{order['id']}", headers=staff_headers))
    r = client.get(f"{base_url}/orders/{order['id']}", headers=other_headers)
    expect_error("GET /orders/{id} (stranger)", r, 403, "FORBIDDEN")
    r = client.get(f"{base_url}/orders/does-not-exist", headers=auth_headers)
    expect_error("GET /orders/missing", r, 404, "ORDER_NOT_FOUND")

    page = jprint("GET /orders", client.get(f"{base_url}/orders/", headers=auth_headers))
    assert page["total"] == 3
    assert {o["user_id"] for o in page["items"]} == {customer_id}
    page = jprint("GET /orders (other)", client.get(f"{base_url}/orders/", headers=other_headers))
    assert page["total"] == 0
    page = jprint("GET /orders?status", client.get(f"{base_url}/orders/", headers=auth_headers,
                                                   params={"status": "Scheduled"}))
    assert [o["id"] for o in page["items"]] == [scheduled["id"]]

    # ===== 5. Cancel =====
    r = client.post(f"{base_url}/orders/{paid['id']}/cancel", headers=auth_headers, json={"reason": ""})
    expect_error("cancel (no reason)", r, 400, "MISSING_REASON")

    r = client.post(f"{base_url}/orders/{paid['id']}/cancel", headers=other_headers, json={"reason": "mine"})
    expect_error("cancel (stranger)", r, 403, "FORBIDDEN")

    res = jprint("cancel", client.post(f"{base_url}/orders/{paid['id']}/cancel", headers=auth_headers,
                                       json={"reason": "ordered twice"}))
    assert res["order"]["status"] == "Cancelled"
    assert res["refund_required"] is True
    assert res["order"]["refund_status"] == "pending"

    r = client.post(f"{base_url}/orders/{paid['id']}/cancel", headers=auth_headers, json={"reason": "again"})
    expect_error("cancel (twice)", r, 409, "NOT_CANCELLABLE")

    # ===== 6. Kitchen to doorstep =====
    oid = order["id"]
    r = client.patch(f"{base_url}/orders/{oid}/status", headers=auth_headers, json={"status": "Processing"})
    assert r.status_code == 403

    for status in ("Processing", "Ready", "OutForDelivery"):
        o = jprint(f"PATCH status {status}", client.patch(f"{base_url}/orders/{oid}/status",
                                                          headers=staff_headers, json={"status": status}))
        assert o["status"] == status

    r = client.post(f"{base_url}/orders/{oid}/cancel", headers=auth_headers, json={"reason": "too late"})
    expect_error("cancel (out for delivery)", r, 409, "NOT_CANCELLABLE")

    r = client.post(f"{base_url}/orders/{oid}/return", headers=auth_headers, json={"reason": "damaged"})
    expect_error("return (not delivered)", r, 409, "NOT_RETURNABLE")

    r = client.patch(f"{base_url}/orders/{oid}/status", headers=staff_headers, json={"status": "Ready"})
    expect_error("PATCH status backwards", r, 409, "INVALID_TRANSITION")

    o = jprint("PATCH status Delivered", client.patch(f"{base_url}/orders/{oid}/status", headers=staff_headers,
                                                      json={"status": "Delivered", "note": "left at door"}))
    version = o["version"]

    # ===== 7. Return =====
    r = client.post(f"{base_url}/orders/{oid}/return", headers=auth_headers, json={"description": "?"})
    expect_error("return (no reason)", r, 400, "MISSING_REASON")

    o = jprint("return", client.post(f"{base_url}/orders/{oid}/return", headers=auth_headers,
                                     json={"reason": "missing_items", "description": "no fries"}))
    assert o["status"] == "Delivered"
    assert o["return_request"]["status"] == "pending"
    assert o["version"] > version

    r = client.post(f"{base_url}/orders/{oid}/return", headers=auth_headers, json={"reason": "quality"})
    expect_error("return (twice)", r, 409, "DUPLICATE_RETURN_REQUEST")

    o = jprint("resolve", client.post(f"{base_url}/orders/{oid}/return/resolve", headers=staff_headers,
                                      json={"decision": "approved", "note": "refund fries"}))
    assert o["return_request"]["status"] == "approved"
    assert o["return_request"]["resolution_note"] == "refund fries"

    # ===== 8. Timeline =====
    events = jprint("GET timeline", client.get(f"{base_url}/orders/{oid}/timeline", headers=auth_headers))
    assert [e["status"] for e in events] == [
        "Placed", "Processing", "Ready", "OutForDelivery", "Delivered", "ReturnRequested", "ReturnApproved",
    ]
    assert events[4]["description"] == "left at door"
    stamps = [datetime.fromisoformat(e["timestamp"]) for e in events]
    assert stamps == sorted(stamps)

    r = client.get(f"{base_url}/orders/{oid}/timeline", headers=other_headers)
    expect_error("GET timeline (stranger)", r, 403, "FORBIDDEN")


def test_request_id_header(client, base_url):
    r = client.get(f"{base_url}/healthz", headers={"X-Request-ID": "abc-123"})
    assert jprint("GET /healthz", r) == {"ok": True}
    assert r.headers["X-Request-ID"] == "abc-123"


def test_modify_order_flow(client, base_url, staff_headers, other_headers, rng_suffix):
    me = {"Authorization": f"Bearer {create_token(f'modifier-{rng_suffix}', 'customer')}"}
    item = jprint("POST /menu/items", client.post(f"{base_url}/menu/items", headers=staff_headers, json={
        "name": f"Salad-{rng_suffix}", "category": f"Greens-{rng_suffix}", "price": 120}))
    order = jprint("POST /orders", client.post(f"{base_url}/orders/", headers=me, json={
        "items": [{"item_id": item["id"], "quantity": 5}], "delivery_address": "1 Old Rd"}))
    assert (order["subtotal"], order["delivery_fee"], order["total"]) == (600, 0, 630)

    check = jprint("GET can-modify", client.get(f"{base_url}/orders/{order['id']}/can-modify", headers=me))
    assert check["can_modify"] is True
    assert 0 < check["time_remaining"] <= 300

    r = client.get(f"{base_url}/orders/{order['id']}/can-modify", headers=other_headers)
    expect_error("GET can-modify (stranger)", r, 403, "FORBIDDEN")

    o = jprint("PATCH /orders/{id}", client.patch(f"{base_url}/orders/{order['id']}", headers=me, json={
        "items": [{"item_id": item["id"], "quantity": 2}], "delivery_address": "2 New Rd"}))
    assert (o["subtotal"], o["delivery_fee"], o["tax"], o["total"]) == (240, 50, 12, 302)
    assert o["delivery_address"] == "2 New Rd"
    assert o["version"] > order["version"]

    jprint("PATCH status", client.patch(f"{base_url}/orders/{order['id']}/status", headers=staff_headers,
                                        json={"status": "Processing"}))
    r = client.patch(f"{base_url}/orders/{order['id']}", headers=me, json={"notes": "extra dressing"})
    expect_error("PATCH /orders/{id} (processing)", r, 409, "NOT_MODIFIABLE")

    check = jprint("GET can-modify (processing)", client.get(f"{base_url}/orders/{order['id']}/can-modify",
                                                              headers=me))
    assert check["can_modify"] is False
    assert check["status"] == "Processing"

    events = jprint("GET timeline", client.get(f"{base_url}/orders/{order['id']}/timeline", headers=me))
    assert [e["status"] for e in events] == ["Placed", "Modified", "Processing"]
