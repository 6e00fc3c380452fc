"""Financial report aggregation over payments and member tenure."""

from __future__ import annotations

import csv
import io
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional

from core import AuditAction, PaymentStatus, ReportDefaults, get_logger
from core.exceptions import DataFetchError
from database.row_store import RowStore, soft_fetch
from services.eligibility import member_tenure, payment_amount
from utils.timestamps import to_storage, utc_now

logger = get_logger(__name__)


@dataclass
class FinancialReport:
    total_revenue: float = 0
    active_members: int = 0
    defaulted_members: int = 0
    buckets: List[int] = field(default_factory=lambda: [0] * ReportDefaults.HISTOGRAM_BUCKETS)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_revenue": self.total_revenue,
            "active_members": self.active_members,
            "defaulted_members": self.defaulted_members,
            "buckets": list(self.buckets),
            "warnings": list(self.warnings),
        }

    def to_csv(self) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(["metric", "value"])
        writer.writerow(["totalRevenue", _format_amount(self.total_revenue)])
        writer.writerow(["activeMembers", self.active_members])
        writer.writerow(["defaultedMembers", self.defaulted_members])
        return buffer.getvalue()


def _format_amount(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _members_with_status(payments: Iterable[Mapping[str, Any]], status: PaymentStatus) -> set:
    return {p["user_id"] for p in payments if p.get("status") == status.value}


def total_revenue(payments: Iterable[Mapping[str, Any]]) -> float:
    """Sum of ``amount`` over paid payments; unparseable amounts count as 0."""
    total = 0.0
    for payment in payments:
        if payment.get("status") != PaymentStatus.PAID.value:
            continue
        total += payment_amount(payment)
    return total


def tenure_histogram(
    members: Iterable[Mapping[str, Any]],
    now: datetime,
    buckets: int = ReportDefaults.HISTOGRAM_BUCKETS,
) -> List[int]:
    """Count members per whole month of tenure.

    Tenure is clamped to ``[0, buckets - 1]``: the last bucket collects every
    member at or beyond it and never rolls over. Members without a readable
    ``created_at`` are left out.
    """
    counts = [0] * buckets
    for member in members:
        months = member_tenure(member, now)
        if months is None:
            continue
        counts[max(0, min(buckets - 1, months))] += 1
    return counts


def aggregate(
    payments: List[Mapping[str, Any]],
    members: List[Mapping[str, Any]],
    now: datetime,
) -> FinancialReport:
    return FinancialReport(
        total_revenue=total_revenue(payments),
        active_members=len(_members_with_status(payments, PaymentStatus.PAID)),
        defaulted_members=len(_members_with_status(payments, PaymentStatus.DEFAULTED)),
        buckets=tenure_histogram(members, now),
    )


class ReportService:
    """Loads the latest payments and members and aggregates them."""

    def __init__(
        self,
        store: Optional[RowStore] = None,
        payment_limit: int = ReportDefaults.PAYMENT_LIMIT,
        member_limit: int = ReportDefaults.MEMBER_LIMIT,
    ) -> None:
        self.store = store or RowStore()
        self.payment_limit = payment_limit
        self.member_limit = member_limit

    async def build_report(self, now: Optional[datetime] = None) -> FinancialReport:
        warnings = []
        try:
            payments = await self.store.query_payments(limit=self.payment_limit)
        except DataFetchError as exc:
            logger.warning(f"Payments fetch error: {exc}")
            warnings.append("No payment data found or access denied.")
            payments = []

        try:
            members = await self.store.query_members(limit=self.member_limit)
        except DataFetchError as exc:
            # The report still renders without the tenure histogram
            logger.warning(f"Users fetch error: {exc}")
            members = []

        report = aggregate(payments, members, now or utc_now())
        report.warnings = warnings
        return report

    async def dashboard_stats(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """Member counts for the admin landing page.

        ``active_users`` counts distinct members with a login in the last
        seven days.
        """
        now = now or utc_now()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        week_ago = now - timedelta(days=7)
        return {
            "total_users": await soft_fetch(self.store.count_members(), "member count", 0),
            "new_users_today": await soft_fetch(
                self.store.count_members(created_since=to_storage(start_of_day)), "new members", 0
            ),
            "active_users": await soft_fetch(
                self.store.count_distinct_users(AuditAction.LOGIN.value, to_storage(week_ago)),
                "recent logins",
                0,
            ),
        }
