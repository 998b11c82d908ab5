import inspect

from fastapi.routing import APIRoute

from geniepay.models.subscription import SubscriptionStatus
from tests.conftest import auth_headers, make_sub, make_user

NEW_SUB = {"serviceName": "Netflix", "price": 649, "renewalDate": "2026-12-01T00:00:00Z"}


def test_routes_require_token(client):
    assert client.get("/subscriptions").status_code == 401
    assert client.post("/subscriptions/add", json=NEW_SUB).status_code == 401


def test_add_and_list(client, headers, fakes, user):
    r = client.post("/subscriptions/add", json=NEW_SUB, headers=headers)
    assert r.status_code == 201
    sub = r.json()["subscription"]
    assert sub["serviceName"] == "Netflix"
    assert sub["status"] == "active"
    assert sub["userId"] == str(user.id)
    assert sub["paymentInfo"] is None
    assert fakes.email.sent[-1]["subject"] == "✅ Netflix Subscription Added"

    client.post("/subscriptions/add", json={**NEW_SUB, "serviceName": "Spotify", "price": 119}, headers=headers)
    body = client.get("/subscriptions", headers=headers).json()
    assert body["count"] == 2
    assert body["totalSpending"] == 768
    assert [s["serviceName"] for s in body["subscriptions"]] == ["Spotify", "Netflix"]


def test_add_ignores_client_user_id(client, headers, session, user):
    other = make_user(session, email="ravi@example.com", name="Ravi")
    r = client.post("/subscriptions/add", json={**NEW_SUB, "userId": str(other.id)}, headers=headers)
    assert r.json()["subscription"]["userId"] == str(user.id)


def test_add_validation(client, headers):
    r = client.post("/subscriptions/add", json={**NEW_SUB, "price": -5}, headers=headers)
    assert r.status_code == 400
    r = client.post("/subscriptions/add", json={"price": 10, "renewalDate": NEW_SUB["renewalDate"]}, headers=headers)
    assert r.status_code == 400


def test_add_succeeds_when_mail_fails(client, headers, fakes):
    fakes.email.fail = True
    r = client.post("/subscriptions/add", json=NEW_SUB, headers=headers)
    assert r.status_code == 201


def test_list_is_scoped_to_owner(client, headers, session):
    other = make_user(session, email="ravi@example.com", name="Ravi")
    make_sub(session, other, "Hotstar", 299)
    body = client.get("/subscriptions", headers=headers).json()
    assert body == {"subscriptions": [], "totalSpending": 0, "count": 0}


def test_pause_toggles(client, headers, session, user):
    sub = make_sub(session, user, "Netflix", 649)
    r = client.patch(f"/subscriptions/{sub.id}/pause", headers=headers)
    assert r.json()["subscription"]["status"] == "paused"
    assert r.json()["message"] == "Subscription paused successfully"

    body = client.get("/subscriptions", headers=headers).json()
    assert body["totalSpending"] == 0

    r = client.patch(f"/subscriptions/{sub.id}/pause", headers=headers)
    assert r.json()["subscription"]["status"] == "active"


def test_delete(client, headers, session, user, fakes):
    sub = make_sub(session, user, "Netflix", 649)
    r = client.delete(f"/subscriptions/{sub.id}", headers=headers)
    assert r.status_code == 200
    assert r.json() == {"message": "Subscription deleted successfully"}
    assert fakes.email.sent[-1]["subject"] == "🚫 Netflix Subscription Cancelled"
    assert client.get("/subscriptions", headers=headers).json()["count"] == 0

    assert client.delete(f"/subscriptions/{sub.id}", headers=headers).status_code == 404


def test_other_owner_gets_not_found(client, session, user):
    sub = make_sub(session, user, "Netflix", 649, status=SubscriptionStatus.ACTIVE)
    intruder = auth_headers(make_user(session, email="eve@example.com", name="Eve"))

    assert client.patch(f"/subscriptions/{sub.id}/pause", headers=intruder).status_code == 404
    assert client.delete(f"/subscriptions/{sub.id}", headers=intruder).status_code == 404
    assert client.get("/subscriptions", headers=auth_headers(user)).json()["count"] == 1


def test_database_only_routes_run_in_threadpool(client):
    # Routes synchrones : FastAPI les exécute hors de la boucle d'événements
    paths = {"/subscriptions", "/subscriptions/add", "/subscriptions/{subscription_id}",
             "/subscriptions/{subscription_id}/pause", "/payments/verify", "/payments/manual",
             "/payments/transactions", "/verify-otp", "/login", "/me"}
    routes = [r for r in client.app.routes if isinstance(r, APIRoute) and r.path in paths]
    assert routes
    assert not [r.path for r in routes if inspect.iscoroutinefunction(r.endpoint)]
