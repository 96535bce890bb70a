"""
api/routes/stats.py -- Account metrics for the admin dashboard.

Gated by the "dashboard" permission rather than a role, the same way every
content area is gated by its own flag. Read-only; no mutations here.
"""

from fastapi import APIRouter, Depends, Request

from api.models import StatsResponse
from auth.dependencies import require_permission
from auth.models import STATUSES
from auth.store import AccountStore

# Auth policy:
# - GET /api/admin/stats: requires permission "dashboard" (super_admin always passes)
router = APIRouter(dependencies=[Depends(require_permission("dashboard"))])


@router.get("/stats", response_model=StatsResponse)
def get_stats(request: Request) -> StatsResponse:
    """Return account counts for dashboard widgets.

    Response:
      totalUsers        -- number of accounts
      byStatus          -- {"pending": N, "active": N, "suspended": N}, zero-filled
      awaitingApproval  -- verified accounts still waiting for activation
    """
    store: AccountStore = request.app.state.account_store
    counts = store.count_by_status()
    by_status = {status: counts.get(status, 0) for status in STATUSES}
    return StatsResponse(
        total_users=sum(counts.values()),
        by_status=by_status,
        awaiting_approval=store.count_awaiting_approval(),
    )
