"""Tenure payout management: eligibility, draws and payout confirmation."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from core import AuditAction, PaymentStatus, PayoutDefaults, get_logger
from core.exceptions import DrawNotFoundError, StaleDrawError
from database.row_store import RowStore, soft_fetch
from services.eligibility import EligibleMember, classify_prepaid, filter_eligible
from services.payout_draw import DrawResult, SecureDraw, Winner
from utils.timestamps import to_storage, utc_now

logger = get_logger(__name__)


@dataclass(frozen=True)
class PayoutRules:
    min_tenure_months: int = PayoutDefaults.MIN_TENURE_MONTHS
    prepay_threshold: int = PayoutDefaults.PREPAY_THRESHOLD
    payout_amount: int = PayoutDefaults.PAYOUT_AMOUNT
    max_winners: int = PayoutDefaults.MAX_WINNERS

    @classmethod
    def from_config(cls, config) -> "PayoutRules":
        return cls(
            min_tenure_months=config.min_tenure_months,
            prepay_threshold=config.prepay_threshold,
            payout_amount=config.payout_amount,
            max_winners=config.max_winners,
        )


class PayoutManager:
    """Runs tenure payout draws and records confirmed payouts."""

    def __init__(
        self,
        store: Optional[RowStore] = None,
        rules: Optional[PayoutRules] = None,
        draw: Optional[SecureDraw] = None,
    ) -> None:
        self.store = store or RowStore()
        self.rules = rules or PayoutRules()
        self.draw = draw or SecureDraw(max_winners=self.rules.max_winners)

    async def load_eligible(self, now: Optional[datetime] = None) -> List[EligibleMember]:
        """Members with enough tenure; empty when the member table is unreadable."""
        members = await soft_fetch(self.store.query_members(), "members", [])
        accounts = await soft_fetch(self.store.query_accounts(), "account directory", [])
        emails = {row["id"]: row.get("email") for row in accounts}
        return filter_eligible(members, emails, now or utc_now(), self.rules.min_tenure_months)

    async def load_prepaid(self) -> Set[str]:
        payments = await soft_fetch(
            self.store.query_payments(status=PaymentStatus.PAID.value), "paid payments", []
        )
        return classify_prepaid(payments, self.rules.prepay_threshold)

    async def run_draw(self, drawn_by: Optional[str] = None, now: Optional[datetime] = None) -> DrawResult:
        """Recompute eligibility, pick winners and persist the draw.

        Eligibility is always recomputed here so winners never come from an
        older eligibility snapshot.
        """
        now = now or utc_now()
        eligible = await self.load_eligible(now)
        prepaid = await self.load_prepaid()
        result = self.draw.draw(eligible, prepaid)

        candidates = [m for m in eligible if m.user_id in prepaid]
        draw_id = await self.store.save_draw(
            seed=result.seed,
            winners=[w.to_dict() for w in result.winners],
            candidates=[m.to_dict() for m in candidates],
            eligible_count=result.eligible_count,
            prepaid_count=result.prepaid_count,
            drawn_by=drawn_by,
            created_at=to_storage(now),
        )
        logger.info(f"Saved payout draw #{draw_id} with {len(result.winners)} winners")
        return dataclasses.replace(result, draw_id=draw_id)

    async def confirm_payouts(
        self,
        session_draw_id: Optional[int],
        requested_draw_id: Optional[int] = None,
        admin_username: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> int:
        """Pay out the winners of the session's latest draw.

        Returns the number of payouts written. Having no draw, or a draw with
        no winners, is a no-op that returns 0.

        Raises:
            StaleDrawError: ``requested_draw_id`` is not the session's latest draw
            DrawNotFoundError: The draw no longer exists
            DrawAlreadyConfirmedError: The draw was paid out already
            WriteError: The payout transaction failed and was rolled back
        """
        if session_draw_id is None:
            return 0
        if requested_draw_id is not None and requested_draw_id != session_draw_id:
            raise StaleDrawError(
                f"Draw {requested_draw_id} is not the latest draw of this session"
            )

        draw = await self.store.get_draw(session_draw_id)
        if draw is None:
            raise DrawNotFoundError(f"Payout draw {session_draw_id} does not exist")
        winners = [Winner(**w) for w in draw["winners"]]
        if not winners:
            return 0

        created_at = to_storage(utc_now())
        amount = self.rules.payout_amount
        payouts = [
            {
                "user_id": w.user_id,
                "amount": amount,
                "status": PaymentStatus.PAYOUT.value,
                "draw_id": session_draw_id,
                "created_at": created_at,
            }
            for w in winners
        ]
        audit_entries = [
            {
                "action": AuditAction.PAYOUT.value,
                "user_id": w.user_id,
                "metadata": {"amount": amount},
                "ip_address": ip_address,
                "user_agent": user_agent,
                "created_at": created_at,
            }
            for w in winners
        ]
        await self.store.record_confirmation(session_draw_id, payouts, audit_entries, created_at)
        logger.info(
            f"Confirmed payout draw #{session_draw_id}: {len(payouts)} payouts of {amount} "
            f"by {admin_username or 'unknown admin'}"
        )
        return len(payouts)

    async def list_draws(self, limit: int = 50) -> List[Dict[str, Any]]:
        return await self.store.list_draws(limit=limit)

    async def verify_draw(self, draw_id: int) -> bool:
        """Replay a stored draw from its seed and compare the winners."""
        draw = await self.store.get_draw(draw_id)
        if draw is None:
            raise DrawNotFoundError(f"Payout draw {draw_id} does not exist")
        candidates = [EligibleMember(**c) for c in draw["candidates"]]
        # Taking as many as were stored makes the check independent of MAX_WINNERS changes
        replayed = self.draw.replay(
            draw["seed"], candidates, {c.user_id for c in candidates}, max_winners=len(draw["winners"])
        )
        return [w.to_dict() for w in replayed] == draw["winners"]
