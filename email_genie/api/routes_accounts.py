"""
Connected account routes.

Tokens never leave the server: responses carry only identity and poll state.
"""

from fastapi import APIRouter, Depends, HTTPException

from email_genie.auth.dependencies import require_api_key
from email_genie.config import settings
from email_genie.storage.json_store import get_store
from email_genie.storage.models import Account

router = APIRouter(prefix="/api/accounts", tags=["accounts"], dependencies=[Depends(require_api_key)])


def _public(account: Account) -> dict:
    return account.model_dump(mode="json", exclude={"access_token", "refresh_token", "token_expiry"})


@router.get("")
def list_accounts():
    accounts = get_store().list_accounts(settings.user_id)
    return {"accounts": [_public(a) for a in accounts]}


@router.get("/{account_id}")
def get_account(account_id: str):
    account = get_store().get_account(settings.user_id, account_id)
    if account is None:
        raise HTTPException(status_code=404, detail="Account not found")
    return _public(account)
