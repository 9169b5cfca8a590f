"""Account approval router."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gatehouse.core.deps import get_current_account, get_db, require_csrf_header
from gatehouse.db.models import Account
from gatehouse.schemas.account import AccountDecisionRequest, AccountDecisionResponse
from gatehouse.services import account_service

router = APIRouter(prefix="/accounts", tags=["Accounts"])


@router.post("/decisions", response_model=AccountDecisionResponse)
def decide_pending_accounts(
    body: AccountDecisionRequest,
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
    _csrf: None = Depends(require_csrf_header),
):
    """Bulk approve or reject pending registrations; per-account failures are reported."""
    result = account_service.decide_accounts(
        db, account, body.account_ids, body.decision, body.reason
    )
    return AccountDecisionResponse(
        approved=result.approved,
        rejected=result.rejected,
        failed=result.failed,
    )
