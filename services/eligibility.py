"""Tenure eligibility and prepayment rules for the tenure payout draw."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from core import PaymentStatus, PayoutDefaults, get_logger
from utils.timestamps import TimestampLike, parse_timestamp

logger = get_logger(__name__)


@dataclass(slots=True, frozen=True)
class EligibleMember:
    user_id: str
    email: str
    tenure_months: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def tenure_months(created_at: TimestampLike, now: datetime) -> int:
    """Whole 30-day months elapsed since ``created_at``.

    Floor division, so a member created in the future gets a negative value.

    Raises:
        ValueError: ``created_at`` is not a timestamp
    """
    return (parse_timestamp(now) - parse_timestamp(created_at)) // PayoutDefaults.MONTH


def member_tenure(member: Mapping[str, Any], now: datetime) -> Optional[int]:
    """Tenure of a member row, or None when its ``created_at`` is unreadable."""
    try:
        return tenure_months(member.get("created_at"), now)
    except ValueError:
        logger.warning(f"Skipping member {member.get('id')!r} with bad created_at {member.get('created_at')!r}")
        return None


def payment_amount(payment: Mapping[str, Any]) -> float:
    """Numeric amount of a payment row; unparseable amounts count as 0."""
    try:
        return float(payment.get("amount") or 0)
    except (TypeError, ValueError):
        return 0.0


def filter_eligible(
    members: Iterable[Mapping[str, Any]],
    emails: Mapping[str, Optional[str]],
    now: datetime,
    min_months: int = PayoutDefaults.MIN_TENURE_MONTHS,
) -> List[EligibleMember]:
    """Members whose tenure reaches ``min_months``, enriched with their email.

    Members missing from the account directory keep ``email="unknown"``;
    rows without a readable ``created_at`` are never eligible.
    """
    eligible = []
    for member in members:
        months = member_tenure(member, now)
        if months is None or months < min_months:
            continue
        eligible.append(EligibleMember(
            user_id=member["id"],
            email=emails.get(member["id"]) or PayoutDefaults.UNKNOWN_EMAIL,
            tenure_months=months,
        ))
    return eligible


def classify_prepaid(
    payments: Iterable[Mapping[str, Any]],
    threshold: float = PayoutDefaults.PREPAY_THRESHOLD,
) -> Set[str]:
    """User ids with at least one single ``paid`` payment of ``threshold`` or more.

    Amounts are not summed: two paid payments of 200 do not qualify.
    """
    return {
        payment["user_id"]
        for payment in payments
        if payment.get("status") == PaymentStatus.PAID.value
        and payment_amount(payment) >= threshold
    }
