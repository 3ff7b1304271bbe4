from fastapi import APIRouter, Depends
from typing import Optional
from schemas.user_schema import User, WithdrawalProcess
from schemas.ledger_schema import WithdrawalStatus
from api.dependencies import admin_required, get_current_user, get_store
from db.store import LedgerStore
from services.admin_service import get_all_users, get_all_withdrawals, get_stats, process_withdrawal
from utils.responses import no_store_json
from utils.timing import timeit

router = APIRouter()

@router.get("/admin/users")
@timeit("admin_users")
async def all_users(current_user: User = Depends(admin_required), store: LedgerStore = Depends(get_store)):
    users = await get_all_users(store, current_user)
    return no_store_json({"users": [u.model_dump() for u in users]})

@router.get("/admin/withdrawals")
@timeit("admin_withdrawals")
async def all_withdrawals(status: Optional[WithdrawalStatus] = None, current_user: User = Depends(admin_required), store: LedgerStore = Depends(get_store)):
    withdrawals = await get_all_withdrawals(store, current_user, status=status)
    return no_store_json({"withdrawals": [w.model_dump() for w in withdrawals]})

@router.get("/admin/stats")
@timeit("admin_stats")
async def stats(current_user: User = Depends(admin_required), store: LedgerStore = Depends(get_store)):
    return no_store_json((await get_stats(store, current_user)).model_dump())

# Authorization is enforced by process_withdrawal itself so every caller path is covered
@router.post("/admin/withdrawals/{withdrawal_id}/process")
@timeit("admin_process_withdrawal")
async def process(withdrawal_id: int, request: WithdrawalProcess, current_user: User = Depends(get_current_user), store: LedgerStore = Depends(get_store)):
    withdrawal = await process_withdrawal(store, current_user, withdrawal_id, request.status, request.admin_notes)
    return no_store_json({"message": f"Withdrawal {withdrawal.status.value}", "withdrawal": withdrawal.model_dump()})
