"""
Unit tests for subscription reconciliation.
"""
from datetime import timezone

import pytest

from app.core.errors import NotFoundError, RemoteProviderError
from app.services.stripe_service import RemoteSubscription
from app.services.subscription_store import get_subscription
from app.services.sync_service import derived_fields, sync_all_subscriptions, sync_subscription
from conftest import PERIOD_END, PERIOD_START, make_customer


def remote_sub(status="active", sub_id="sub_999", cancel_at_period_end=False):
    return RemoteSubscription(
        id=sub_id,
        status=status,
        current_period_start=PERIOD_START,
        current_period_end=PERIOD_END,
        cancel_at_period_end=cancel_at_period_end,
    )


def test_derived_fields_active_maps_to_pro():
    fields = derived_fields(remote_sub(status="active"))
    assert fields["plan"] == "pro"
    assert fields["status"] == "active"


def test_derived_fields_other_status_maps_to_free():
    fields = derived_fields(remote_sub(status="past_due"))
    assert fields["plan"] == "free"
    assert fields["status"] == "past_due"


def test_sync_overwrites_local_record(db, billing, make_subscription):
    make_subscription(stripe_customer_id="cus_123")
    billing.customers["cus_123"] = make_customer(subscriptions=[remote_sub(cancel_at_period_end=True)])

    result = sync_subscription(db, billing, "user-1")

    assert result.synced is True
    assert result.changed is True
    assert result.plan == "pro"
    assert result.status == "active"
    sub = get_subscription(db, "user-1")
    assert sub.stripe_subscription_id == "sub_999"
    assert sub.plan == "pro"
    assert sub.cancel_at_period_end is True
    assert sub.current_period_end.replace(tzinfo=timezone.utc) == PERIOD_END


def test_sync_uses_first_remote_subscription(db, billing, make_subscription):
    make_subscription(stripe_customer_id="cus_123")
    billing.customers["cus_123"] = make_customer(subscriptions=[
        remote_sub(status="canceled", sub_id="sub_first"),
        remote_sub(status="active", sub_id="sub_second"),
    ])

    result = sync_subscription(db, billing, "user-1")

    assert result.plan == "free"
    sub = get_subscription(db, "user-1")
    assert sub.stripe_subscription_id == "sub_first"
    assert sub.status == "canceled"


def test_sync_twice_is_identical(db, billing, make_subscription):
    make_subscription(stripe_customer_id="cus_123")
    billing.customers["cus_123"] = make_customer(subscriptions=[remote_sub()])

    sync_subscription(db, billing, "user-1")
    first = get_subscription(db, "user-1").to_dict()

    result = sync_subscription(db, billing, "user-1")
    second = get_subscription(db, "user-1").to_dict()

    assert result.changed is False
    assert first == second


def test_sync_without_remote_subscriptions_leaves_record(db, billing, make_subscription):
    make_subscription(stripe_customer_id="cus_123", status="paused")
    billing.customers["cus_123"] = make_customer(subscriptions=[])
    before = get_subscription(db, "user-1").to_dict()

    result = sync_subscription(db, billing, "user-1")

    assert result.synced is False
    assert result.message == "No active Stripe subscription found"
    assert get_subscription(db, "user-1").to_dict() == before


def test_sync_without_customer_skips_stripe(db, billing, make_subscription):
    make_subscription()

    result = sync_subscription(db, billing, "user-1")

    assert result.synced is False
    assert billing.calls == []


def test_sync_deleted_customer_is_not_found(db, billing, make_subscription):
    make_subscription(plan="pro", stripe_customer_id="cus_gone", stripe_subscription_id="sub_1")
    billing.customers["cus_gone"] = make_customer("cus_gone", deleted=True)

    with pytest.raises(NotFoundError) as exc_info:
        sync_subscription(db, billing, "user-1")

    assert exc_info.value.message == "Customer deleted"
    # Not silently downgraded
    assert get_subscription(db, "user-1").plan == "pro"


def test_sync_missing_record_is_not_found(db, billing):
    with pytest.raises(NotFoundError):
        sync_subscription(db, billing, "ghost")


def test_sync_repairs_drift_after_failed_local_write(db, billing, paid_subscription):
    # Stripe already canceled the subscription but the local record still says pro
    billing.customers["cus_123"] = make_customer(subscriptions=[remote_sub(status="canceled", sub_id="sub_123")])

    sync_subscription(db, billing, "user-1")

    sub = get_subscription(db, "user-1")
    assert sub.plan == "free"
    assert sub.status == "canceled"


def test_sync_all_counts_outcomes(db, billing, make_subscription):
    make_subscription(user_id="synced", stripe_customer_id="cus_a")
    make_subscription(user_id="empty", stripe_customer_id="cus_b")
    make_subscription(user_id="deleted", stripe_customer_id="cus_c")
    make_subscription(user_id="no-customer")
    billing.customers["cus_a"] = make_customer("cus_a", subscriptions=[remote_sub()])
    billing.customers["cus_b"] = make_customer("cus_b")

    stats = sync_all_subscriptions(db, billing)

    assert stats.checked == 3
    assert stats.synced == 1
    assert stats.changed == 1
    assert stats.skipped == 1
    assert stats.errors == 1
    assert "deleted" in stats.failures


def test_sync_all_continues_after_provider_error(db, billing, make_subscription):
    make_subscription(user_id="a", stripe_customer_id="cus_a")
    make_subscription(user_id="b", stripe_customer_id="cus_b")
    billing.customers["cus_b"] = make_customer("cus_b", subscriptions=[remote_sub()])
    original = billing.retrieve_customer

    def flaky(customer_id):
        if customer_id == "cus_a":
            raise RemoteProviderError("timeout")
        return original(customer_id)

    billing.retrieve_customer = flaky

    stats = sync_all_subscriptions(db, billing)

    assert stats.errors == 1
    assert stats.synced == 1
    assert get_subscription(db, "b").plan == "pro"
