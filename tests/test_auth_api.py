from datetime import timedelta

from sqlmodel import select

from geniepay.models.user import User
from geniepay.utils.timezone import utcnow
from tests.conftest import auth_headers, make_user


def _load_user(session, email):
    session.expire_all()
    return session.exec(select(User).where(User.email == email)).first()


def test_signup_verify_login_flow(client, session, fakes):
    r = client.post("/signup", json={"name": " Asha ", "email": "Asha@Example.com", "password": "secret123"})
    assert r.status_code == 200
    assert r.json() == {
        "message": "Verification code sent. Please check your email.",
        "requiresVerification": True,
        "email": "asha@example.com",
    }

    user = _load_user(session, "asha@example.com")
    assert user.name == "Asha"
    assert not user.is_verified
    assert fakes.email.sent[0]["to"] == "asha@example.com"
    assert user.email_otp in fakes.email.sent[0]["html"]

    r = client.post("/verify-otp", json={"email": "asha@example.com", "otp": user.email_otp})
    assert r.status_code == 200
    body = r.json()
    assert body["user"]["isVerified"] is True
    assert "hashedPassword" not in body["user"]
    assert body["token"]
    # Email de bienvenue (tâche de fond)
    assert "Welcome" in fakes.email.sent[-1]["subject"]

    r = client.post("/login", json={"email": "asha@example.com", "password": "secret123"})
    assert r.status_code == 200
    token = r.json()["token"]
    me = client.get("/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["email"] == "asha@example.com"


def test_signup_code_goes_to_email_only(client, session, fakes):
    r = client.post("/signup", json={
        "name": "Ravi", "email": "ravi@example.com", "password": "secret123", "phone": "98765 43210",
    })
    assert r.status_code == 200
    assert fakes.sms.sent == []
    assert fakes.email.sent[0]["to"] == "ravi@example.com"
    assert _load_user(session, "ravi@example.com").phone == "+919876543210"


def test_signup_rejects_existing_verified_email(client, user):
    r = client.post("/signup", json={"name": "Asha", "email": user.email, "password": "secret123"})
    assert r.status_code == 400
    assert r.json()["error"] == "User already exists with this email"


def test_resignup_refreshes_unverified_account(client, session):
    make_user(session, email="late@example.com", verified=False)
    r = client.post("/signup", json={"name": "Late", "email": "late@example.com", "password": "another1"})
    assert r.status_code == 200
    user = _load_user(session, "late@example.com")
    assert user.name == "Late"
    assert user.email_otp


def test_signup_validation_error_shape(client):
    r = client.post("/signup", json={"name": "Asha", "email": "not-an-email", "password": "123"})
    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "Validation failed"
    fields = {e["field"] for e in body["errors"]}
    assert {"email", "password"} <= fields


def test_verify_otp_failures(client, session):
    make_user(session, email="new@example.com", verified=False)
    user = _load_user(session, "new@example.com")
    user.email_otp = "123456"
    user.email_otp_expires = utcnow() - timedelta(minutes=1)
    session.add(user)
    session.commit()

    r = client.post("/verify-otp", json={"email": "new@example.com", "otp": "123456"})
    assert r.status_code == 400
    assert "expired" in r.json()["error"]

    client.post("/resend-otp", json={"email": "new@example.com"})
    r = client.post("/verify-otp", json={"email": "new@example.com", "otp": "000000"})
    assert r.status_code == 400

    r = client.post("/verify-otp", json={"email": "ghost@example.com", "otp": "123456"})
    assert r.status_code == 404


def test_resend_otp_invalidates_previous_code(client, session):
    client.post("/signup", json={"name": "Asha", "email": "asha2@example.com", "password": "secret123"})
    first = _load_user(session, "asha2@example.com").email_otp
    client.post("/resend-otp", json={"email": "asha2@example.com"})
    second = _load_user(session, "asha2@example.com").email_otp
    if first != second:
        r = client.post("/verify-otp", json={"email": "asha2@example.com", "otp": first})
        assert r.status_code == 400
    r = client.post("/verify-otp", json={"email": "asha2@example.com", "otp": second})
    assert r.status_code == 200


def test_login_errors(client, session, user):
    r = client.post("/login", json={"email": user.email, "password": "wrong-password"})
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid credentials"}

    r = client.post("/login", json={"email": "nobody@example.com", "password": "secret123"})
    assert r.status_code == 400

    make_user(session, email="pending@example.com", verified=False)
    r = client.post("/login", json={"email": "pending@example.com", "password": "secret123"})
    assert r.status_code == 403
    assert r.json()["requiresVerification"] is True


def test_me_requires_valid_token(client, user):
    assert client.get("/me").status_code == 401
    assert client.get("/me", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 403


def test_update_me(client, user):
    headers = auth_headers(user)
    r = client.patch("/me", json={"walletAddress": "0xabc", "phone": "9876543210"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["walletAddress"] == "0xabc"
    assert r.json()["phone"] == "+919876543210"

    r = client.patch("/me", json={"phone": "123"}, headers=headers)
    assert r.status_code == 400


def test_phone_login_flow(client, session, fakes):
    make_user(session, email="phone@example.com", phone="+919876543210")

    r = client.post("/auth/phone-login", json={"phone": "9876543210"})
    assert r.status_code == 200
    assert r.json()["phone"] == "+91******3210"

    code = _load_user(session, "phone@example.com").phone_otp
    assert code in fakes.sms.sent[-1]["message"]

    r = client.post("/auth/verify-phone-otp", json={"phone": "+91 98765 43210", "otp": code})
    assert r.status_code == 200
    assert r.json()["user"]["isVerified"] is True


def test_phone_login_unknown_number(client):
    r = client.post("/auth/phone-login", json={"phone": "9876543210"})
    assert r.status_code == 404


def test_phone_login_requires_verified_account(client, session, fakes):
    make_user(session, email="pending@example.com", phone="+919876543210", verified=False)

    r = client.post("/auth/phone-login", json={"phone": "9876543210"})
    assert r.status_code == 403
    assert r.json()["requiresVerification"] is True
    assert fakes.sms.sent == []

    user = _load_user(session, "pending@example.com")
    user.phone_otp = "123456"
    user.phone_otp_expires = utcnow() + timedelta(minutes=5)
    session.add(user)
    session.commit()

    r = client.post("/auth/verify-phone-otp", json={"phone": "9876543210", "otp": "123456"})
    assert r.status_code == 403
    assert r.json()["requiresVerification"] is True
    assert not _load_user(session, "pending@example.com").is_verified
