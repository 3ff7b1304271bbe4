from fastapi import APIRouter, Depends
from schemas.user_schema import User, WithdrawalCreate
from api.dependencies import get_current_user, get_store
from db.store import LedgerStore
from services.withdrawal_service import get_wallet_info, list_user_withdrawals, request_withdrawal
from utils.responses import no_store_json
from utils.timing import timeit

router = APIRouter()

@router.get("/wallet")
@timeit("get_wallet")
async def get_wallet(current_user: User = Depends(get_current_user), store: LedgerStore = Depends(get_store)):
    return no_store_json(await get_wallet_info(store, current_user.id))

@router.get("/wallet/withdrawals")
@timeit("get_withdrawals")
async def get_withdrawals(current_user: User = Depends(get_current_user), store: LedgerStore = Depends(get_store)):
    withdrawals = await list_user_withdrawals(store, current_user.id)
    return no_store_json({"withdrawals": [w.model_dump() for w in withdrawals]})

@router.post("/wallet/withdrawals", status_code=201)
@timeit("create_withdrawal")
async def create_withdrawal(request: WithdrawalCreate, current_user: User = Depends(get_current_user), store: LedgerStore = Depends(get_store)):
    withdrawal = await request_withdrawal(store, current_user.id, request)
    return no_store_json(
        {
            "message": "Withdrawal request submitted and pending admin approval",
            "withdrawal": withdrawal.model_dump(),
        },
        status_code=201,
    )
