# Import every model so Base.metadata is complete for Alembic and tests
from .user import User
from .business import Business
from .run import Run, RunStatus, RunSource
from .run_credit import RunCredit
from .subscription import Subscription, SubscriptionStatus
from .free_tool_result import FreeToolResult
from .free_audit import FreeAudit
from .task_completion import TaskCompletion
from .promo_code import PromoCode

__all__ = [
    "User",
    "Business",
    "Run",
    "RunStatus",
    "RunSource",
    "RunCredit",
    "Subscription",
    "SubscriptionStatus",
    "FreeToolResult",
    "FreeAudit",
    "TaskCompletion",
    "PromoCode",
]
