import pytest

from geniepay.core.errors import NotFoundError, ValidationError
from geniepay.models.subscription import PaymentStatus, SubscriptionStatus
from geniepay.services.subscription_store import active_total
from geniepay.utils.timezone import days_from_now
from tests.conftest import make_sub, make_user


def test_create_and_list_newest_first(store, user):
    store.create(user.id, "Netflix", 649, days_from_now(30))
    store.create(user.id, "  Spotify ", 119, days_from_now(30))

    subs = store.list_by_owner(user.id)
    assert [s.service_name for s in subs] == ["Spotify", "Netflix"]
    assert all(s.status == SubscriptionStatus.ACTIVE for s in subs)


@pytest.mark.parametrize("name,price", [("", 100), ("Netflix", -1), ("Netflix", "abc")])
def test_create_rejects_invalid_input(store, user, name, price):
    with pytest.raises(ValidationError):
        store.create(user.id, name, price, days_from_now(30))
    assert store.list_by_owner(user.id) == []


def test_get_is_scoped_to_owner(store, user, session):
    other = make_user(session, email="ravi@example.com", name="Ravi")
    sub = make_sub(session, other, "Netflix", 649)

    with pytest.raises(NotFoundError):
        store.get(sub.id, user.id)
    with pytest.raises(NotFoundError):
        store.delete(sub.id, user.id)
    assert store.get(sub.id, other.id).service_name == "Netflix"


def test_list_filters_by_status(store, user, session):
    make_sub(session, user, "Netflix", 649)
    make_sub(session, user, "Spotify", 119, status=SubscriptionStatus.PAUSED)
    paused = store.list_by_owner(user.id, SubscriptionStatus.PAUSED)
    assert [s.service_name for s in paused] == ["Spotify"]


def test_find_by_name_pattern_is_case_insensitive_substring(store, user, session):
    make_sub(session, user, "YouTube Premium", 129)
    assert store.find_by_name_pattern(user.id, "youtube").service_name == "YouTube Premium"
    assert store.find_by_name_pattern(user.id, "PREM").service_name == "YouTube Premium"
    assert store.find_by_name_pattern(user.id, "netflix") is None
    assert store.find_by_name_pattern(user.id, "  ") is None


def test_find_by_name_pattern_treats_wildcards_literally(store, user, session):
    make_sub(session, user, "Netflix", 649)
    assert store.find_by_name_pattern(user.id, "%") is None
    assert store.find_by_name_pattern(user.id, "N_tflix") is None


def test_toggle_pause_round_trip(store, user, session):
    sub = make_sub(session, user, "Netflix", 649)
    assert store.toggle_pause(sub.id, user.id).status == SubscriptionStatus.PAUSED
    assert store.toggle_pause(sub.id, user.id).status == SubscriptionStatus.ACTIVE


def test_toggle_pause_reactivates_cancelled(store, user, session):
    sub = make_sub(session, user, "Netflix", 649, status=SubscriptionStatus.CANCELLED)
    assert store.toggle_pause(sub.id, user.id).status == SubscriptionStatus.PAUSED


def test_update_status_rejects_unknown_value(store, user, session):
    sub = make_sub(session, user, "Netflix", 649)
    with pytest.raises(ValidationError):
        store.update_status(sub.id, user.id, "archived")


def test_update_payment_info(store, user, session):
    sub = make_sub(session, user, "Netflix", 649)
    updated = store.update_payment_info(sub.id, payment_status="paid", transaction_id="pay_1", total_paid=661.98)
    assert updated.payment_status == PaymentStatus.PAID
    assert updated.transaction_id == "pay_1"

    with pytest.raises(ValidationError):
        store.update_payment_info(sub.id, price=1)
    with pytest.raises(NotFoundError):
        store.update_payment_info(424242, payment_status="paid")


def test_delete_removes_row(store, user, session):
    sub = make_sub(session, user, "Netflix", 649)
    store.delete(sub.id, user.id)
    assert store.list_by_owner(user.id) == []


def test_active_total_ignores_paused_and_cancelled(store, user, session):
    make_sub(session, user, "Netflix", 649)
    make_sub(session, user, "Spotify", 119.5)
    make_sub(session, user, "Hulu", 500, status=SubscriptionStatus.PAUSED)
    make_sub(session, user, "Zee5", 99, status=SubscriptionStatus.CANCELLED)
    assert active_total(store.list_by_owner(user.id)) == 768.5
