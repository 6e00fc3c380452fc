"""Services package."""

from .async_runner import set_main_loop, start_background_loop, stop_background_loop, run_coroutine_sync
from .audit_service import AuditService
from .eligibility import EligibleMember, classify_prepaid, filter_eligible, tenure_months
from .payout_draw import DrawResult, SecureDraw, Winner, select_winners
from .payout_service import PayoutManager, PayoutRules
from .reports import FinancialReport, ReportService, tenure_histogram, total_revenue
from .user_service import UserService

__all__ = [
    "set_main_loop",
    "start_background_loop",
    "stop_background_loop",
    "run_coroutine_sync",
    "AuditService",
    "EligibleMember",
    "classify_prepaid",
    "filter_eligible",
    "tenure_months",
    "DrawResult",
    "SecureDraw",
    "Winner",
    "select_winners",
    "PayoutManager",
    "PayoutRules",
    "FinancialReport",
    "ReportService",
    "tenure_histogram",
    "total_revenue",
    "UserService",
]
