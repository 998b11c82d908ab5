import os
import tempfile
from datetime import timedelta

import pytest

# Base SQLite temporaire, configurée AVANT l'import de l'application
_db_fd, _db_path = tempfile.mkstemp(suffix=".db")
os.environ["DATABASE_URL"] = f"sqlite:///{_db_path}"
os.environ["SECRET_KEY"] = "test-secret-key"
for _key in (
    "GOOGLE_API_KEY", "EMAIL_USER", "EMAIL_PASSWORD", "TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN",
    "RAZORPAY_KEY_ID", "RAZORPAY_KEY_SECRET", "WEB3_PROVIDER_URL", "CONTRACT_ADDRESS", "PRIVATE_KEY",
):
    os.environ.pop(_key, None)

from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from geniepay.core.errors import ProviderUnavailable
from geniepay.core.providers import Providers
from geniepay.core.security import create_access_token, hash_password
from geniepay.db.session import engine
from geniepay.main import app
from geniepay.models.subscription import Subscription, SubscriptionStatus
from geniepay.models.user import User
from geniepay.services.ai_engine.intent_parser import IntentParser
from geniepay.services.notification_service import NotificationService
from geniepay.services.payment_service import RazorpayGateway
from geniepay.services.subscription_store import SubscriptionStore
from geniepay.utils.timezone import days_from_now, utcnow


# --- Faux fournisseurs ---

class FakeTextGenerator:
    """Renvoie les réponses préparées dans l'ordre et garde les prompts reçus."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.prompts = []
        self.error = None

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.replies.pop(0) if self.replies else ""


class RecordingEmailSender:
    def __init__(self, configured=True, fail=False):
        self.configured = configured
        self.fail = fail
        self.sent = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def send(self, to, subject, html):
        if not self.configured or self.fail:
            raise ProviderUnavailable("Failed to send email")
        self.sent.append({"to": to, "subject": subject, "html": html})


class RecordingSmsSender:
    def __init__(self):
        self.sent = []

    @property
    def is_configured(self) -> bool:
        return True

    async def send(self, phone, message):
        self.sent.append({"phone": phone, "message": message})
        return {"success": True, "messageId": f"SM{len(self.sent)}"}


class FakeGateway(RazorpayGateway):
    """Signature HMAC réelle, création de commande en mémoire."""

    def __init__(self):
        super().__init__("rzp_test_key", "rzp_test_secret")
        self.orders = []

    async def create_order(self, amount_paise, receipt, notes=None):
        self._require_config()
        order = {"id": f"order_{len(self.orders) + 1}", "amount": amount_paise, "currency": "INR", "receipt": receipt}
        self.orders.append(order)
        return order


class FakeChain:
    def __init__(self, configured=True):
        self.configured = configured
        self.calls = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    def explorer_url(self, tx_hash):
        return f"https://explorer.test/tx/{tx_hash}"

    async def pay_subscription(self, recipient, amount):
        self.calls.append(("pay", recipient, amount))
        return "0xpay"

    async def pause_subscription(self, subscription_id):
        self.calls.append(("pause", subscription_id))
        return "0xpause"

    async def cancel_subscription(self, subscription_id):
        self.calls.append(("cancel", subscription_id))
        return "0xcancel"


class FakeProviders:
    """Regroupe les faux clients pour que les tests puissent les inspecter."""

    def __init__(self):
        self.generator = FakeTextGenerator()
        self.email = RecordingEmailSender()
        self.sms = RecordingSmsSender()
        self.gateway = FakeGateway()
        self.chain = FakeChain()

    def build(self, with_ai=True) -> Providers:
        return Providers(
            intent_parser=IntentParser(self.generator) if with_ai else None,
            notifications=NotificationService(self.email, self.sms, otp_minutes=10),
            payments=self.gateway,
            chain=self.chain,
        )


# --- Fixtures ---

@pytest.fixture(autouse=True)
def reset_db():
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield


@pytest.fixture
def fakes():
    return FakeProviders()


@pytest.fixture
def client(fakes):
    original = app.state.providers
    with TestClient(app) as test_client:
        app.state.providers = fakes.build()
        yield test_client
    app.state.providers = original


@pytest.fixture
def session():
    with Session(engine) as db:
        yield db


@pytest.fixture
def store(session):
    return SubscriptionStore(session)


def make_user(session, email="asha@example.com", name="Asha", password="secret123",
              verified=True, phone=None) -> User:
    user = User(
        name=name,
        email=email,
        hashed_password=hash_password(password),
        is_verified=verified,
        phone=phone,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def make_sub(session, user, name, price, status=SubscriptionStatus.ACTIVE, age_minutes=0) -> Subscription:
    sub = Subscription(
        user_id=user.id,
        service_name=name,
        price=price,
        renewal_date=days_from_now(30),
        status=status,
        created_at=utcnow() - timedelta(minutes=age_minutes),
    )
    session.add(sub)
    session.commit()
    session.refresh(sub)
    return sub


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(subject=user.id)}"}


@pytest.fixture
def user(session):
    return make_user(session)


@pytest.fixture
def headers(user):
    return auth_headers(user)


def pytest_sessionfinish(session, exitstatus):
    engine.dispose()
    os.close(_db_fd)
    if os.path.exists(_db_path):
        os.unlink(_db_path)
