"""Unit tests for tenure eligibility and prepayment classification."""

from datetime import timedelta

import pytest

from conftest import NOW, days_ago
from services.eligibility import EligibleMember, classify_prepaid, filter_eligible, tenure_months


@pytest.mark.parametrize("days,months", [
    (0, 0),
    (29, 0),
    (30, 1),
    (359, 11),
    (360, 12),
    (365, 12),
    (800, 26),
])
def test_tenure_months_counts_whole_30_day_months(days, months):
    assert tenure_months(NOW - timedelta(days=days), NOW) == months


def test_tenure_months_accepts_stored_text():
    assert tenure_months(days_ago(400), NOW) == 13
    assert tenure_months("2024-06-01T12:00:00Z", NOW) == 12


def test_tenure_months_is_negative_for_future_members():
    assert tenure_months(NOW + timedelta(days=1), NOW) == -1


def test_filter_eligible_boundary_at_360_days():
    members = [
        {"id": "exact", "created_at": days_ago(360)},
        {"id": "short", "created_at": to_text(NOW - timedelta(days=360) + timedelta(seconds=1))},
    ]
    eligible = filter_eligible(members, {}, NOW)
    assert [m.user_id for m in eligible] == ["exact"]
    assert eligible[0].tenure_months == 12


def to_text(value):
    return value.strftime("%Y-%m-%d %H:%M:%S")


def test_filter_eligible_enriches_email_and_defaults_unknown():
    members = [
        {"id": "u1", "created_at": days_ago(400)},
        {"id": "u2", "created_at": days_ago(400)},
        {"id": "u3", "created_at": days_ago(400)},
    ]
    emails = {"u1": "ann@example.com", "u3": None}

    eligible = filter_eligible(members, emails, NOW)

    assert eligible == [
        EligibleMember(user_id="u1", email="ann@example.com", tenure_months=13),
        EligibleMember(user_id="u2", email="unknown", tenure_months=13),
        EligibleMember(user_id="u3", email="unknown", tenure_months=13),
    ]


def test_filter_eligible_respects_custom_minimum():
    members = [{"id": "u1", "created_at": days_ago(200)}]
    assert filter_eligible(members, {}, NOW) == []
    assert len(filter_eligible(members, {}, NOW, min_months=6)) == 1


def test_filter_eligible_on_sample_members(store):
    emails = {a["id"]: a["email"] for a in store.accounts}
    eligible = filter_eligible(store.members, emails, NOW)

    assert {m.user_id for m in eligible} == {"u1", "u2", "u3", "u4", "u5"}
    assert all(m.tenure_months >= 12 for m in eligible)


def test_eligible_member_to_dict():
    member = EligibleMember(user_id="u1", email="ann@example.com", tenure_months=14)
    assert member.to_dict() == {"user_id": "u1", "email": "ann@example.com", "tenure_months": 14}


def test_classify_prepaid_requires_single_payment_at_threshold():
    payments = [
        {"user_id": "split", "amount": 250, "status": "paid"},
        {"user_id": "split", "amount": 250, "status": "paid"},
        {"user_id": "exact", "amount": 300, "status": "paid"},
        {"user_id": "big", "amount": "1000.50", "status": "paid"},
        {"user_id": "defaulted", "amount": 500, "status": "defaulted"},
        {"user_id": "payout", "amount": 300, "status": "payout"},
    ]
    assert classify_prepaid(payments) == {"exact", "big"}


def test_classify_prepaid_custom_threshold():
    payments = [{"user_id": "u1", "amount": 250, "status": "paid"}]
    assert classify_prepaid(payments, threshold=200) == {"u1"}
    assert classify_prepaid(payments) == set()


def test_classify_prepaid_empty():
    assert classify_prepaid([]) == set()


@pytest.mark.parametrize("created_at", ["not-a-date", "", None, 1700000000])
def test_unreadable_created_at_is_never_eligible(created_at):
    members = [
        {"id": "good", "created_at": days_ago(400)},
        {"id": "bad", "created_at": created_at},
    ]
    assert [m.user_id for m in filter_eligible(members, {}, NOW)] == ["good"]


def test_tenure_months_rejects_non_timestamps():
    with pytest.raises(ValueError):
        tenure_months("not-a-date", NOW)
    with pytest.raises(ValueError):
        tenure_months(None, NOW)


def test_classify_prepaid_ignores_unreadable_amounts():
    payments = [
        {"user_id": "text", "amount": "n/a", "status": "paid"},
        {"user_id": "missing", "amount": None, "status": "paid"},
        {"user_id": "nested", "amount": {"value": 300}, "status": "paid"},
        {"user_id": "ok", "amount": "300", "status": "paid"},
    ]
    assert classify_prepaid(payments) == {"ok"}
