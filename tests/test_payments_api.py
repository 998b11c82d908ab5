import hashlib
import hmac

from tests.conftest import auth_headers, make_sub, make_user


def _sign(order_id, payment_id, secret="rzp_test_secret"):
    return hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


def test_create_order(client, headers, session, user, fakes):
    sub = make_sub(session, user, "Netflix", 649)
    r = client.post("/payments/create-order", json={"subscriptionId": sub.id}, headers=headers)
    assert r.status_code == 200
    body = r.json()
    assert body == {
        "orderId": "order_1",
        "amount": 66198,
        "currency": "INR",
        "keyId": "rzp_test_key",
        "breakdown": {"subscriptionAmount": 649, "platformFee": 12.98, "totalAmount": 661.98},
    }
    assert fakes.gateway.orders[0]["receipt"] == f"sub_{sub.id}"

    listed = client.get("/subscriptions", headers=headers).json()
    assert listed["subscriptions"][0]["paymentInfo"]["status"] == "pending"


def test_create_order_unconfigured_gateway(client, headers, session, user, fakes):
    sub = make_sub(session, user, "Netflix", 649)
    fakes.gateway.key_secret = None
    r = client.post("/payments/create-order", json={"subscriptionId": sub.id}, headers=headers)
    assert r.status_code == 503


def test_create_order_for_someone_else(client, session, user):
    sub = make_sub(session, user, "Netflix", 649)
    intruder = auth_headers(make_user(session, email="eve@example.com", name="Eve"))
    r = client.post("/payments/create-order", json={"subscriptionId": sub.id}, headers=intruder)
    assert r.status_code == 404


def test_verify_valid_signature_marks_paid(client, headers, session, user):
    sub = make_sub(session, user, "Netflix", 649)
    order_id = client.post("/payments/create-order", json={"subscriptionId": sub.id}, headers=headers).json()["orderId"]

    r = client.post("/payments/verify", headers=headers, json={
        "subscriptionId": sub.id, "orderId": order_id, "paymentId": "pay_9",
        "signature": _sign(order_id, "pay_9"),
    })
    assert r.status_code == 200
    info = r.json()["subscription"]["paymentInfo"]
    assert info["status"] == "paid"
    assert info["method"] == "razorpay"
    assert info["transactionId"] == "pay_9"
    assert info["platformFee"] == 12.98
    assert info["totalPaid"] == 661.98
    assert info["paidAt"]


def test_verify_bad_signature_marks_failed(client, headers, session, user):
    sub = make_sub(session, user, "Netflix", 649)
    order_id = client.post("/payments/create-order", json={"subscriptionId": sub.id}, headers=headers).json()["orderId"]

    r = client.post("/payments/verify", headers=headers, json={
        "subscriptionId": sub.id, "orderId": order_id, "paymentId": "pay_9", "signature": "forged",
    })
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid payment signature"
    listed = client.get("/subscriptions", headers=headers).json()
    assert listed["subscriptions"][0]["paymentInfo"]["status"] == "failed"


def test_verify_rejects_other_order(client, headers, session, user):
    sub = make_sub(session, user, "Netflix", 649)
    client.post("/payments/create-order", json={"subscriptionId": sub.id}, headers=headers)
    r = client.post("/payments/verify", headers=headers, json={
        "subscriptionId": sub.id, "orderId": "order_other", "paymentId": "pay_1",
        "signature": _sign("order_other", "pay_1"),
    })
    assert r.status_code == 400


def test_manual_payment_and_transactions(client, headers, session, user):
    netflix = make_sub(session, user, "Netflix", 649)
    make_sub(session, user, "Spotify", 119)

    r = client.post("/payments/manual", headers=headers, json={
        "subscriptionId": netflix.id, "transactionId": "UPI123",
    })
    assert r.status_code == 200
    assert r.json()["subscription"]["paymentInfo"]["status"] == "manual"

    rows = client.get("/payments/transactions", headers=headers).json()
    assert len(rows) == 1
    assert rows[0]["serviceName"] == "Netflix"
    assert rows[0]["paymentMethod"] == "upi"
    assert rows[0]["totalPaid"] == 649
    assert rows[0]["transactionId"] == "UPI123"
