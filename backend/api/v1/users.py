from fastapi import APIRouter, Depends
from schemas.user_schema import User as UserSchema
from api.dependencies import get_current_user, get_store
from db.store import LedgerStore
from services.user_service import get_user_profile
from services.referral_service import list_user_referrals
from utils.responses import no_store_json
from utils.timing import timeit

router = APIRouter()

@router.get("/users/me")
@timeit("read_users_me")
async def read_users_me(current_user: UserSchema = Depends(get_current_user), store: LedgerStore = Depends(get_store)):
    profile = await get_user_profile(store, current_user.id)
    return no_store_json(profile)

@router.get("/users/me/referrals")
@timeit("read_user_referrals")
async def read_user_referrals(current_user: UserSchema = Depends(get_current_user), store: LedgerStore = Depends(get_store)):
    referrals = await list_user_referrals(store, current_user.id)
    return no_store_json({"referrals": [r.model_dump() for r in referrals]})
