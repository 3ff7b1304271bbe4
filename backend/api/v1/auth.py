from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm
from schemas.user_schema import UserCreate
from api.dependencies import get_store, get_identity_provider
from core.security import oauth2_scheme
from db.store import LedgerStore
from services.identity_service import IdentityProvider
from services.user_service import create_user, get_user_profile
from utils.responses import no_store_json
from utils.timing import timeit

router = APIRouter()

@router.post("/signup", status_code=201)
@timeit("signup")
async def signup(user: UserCreate, store: LedgerStore = Depends(get_store)):
    account = await create_user(store, user)
    profile = await get_user_profile(store, account.id)
    return no_store_json({"message": "User created successfully", "user": profile}, status_code=201)

@router.post("/login")
@timeit("login")
async def login(form_data: OAuth2PasswordRequestForm = Depends(), identity: IdentityProvider = Depends(get_identity_provider)):
    # OAuth2 form field "username" carries the email address
    access_token = await identity.authenticate(form_data.username, form_data.password)
    return no_store_json({"access_token": access_token, "token_type": "bearer"})

@router.post("/logout")
@timeit("logout")
async def logout(token: str = Depends(oauth2_scheme), identity: IdentityProvider = Depends(get_identity_provider)):
    await identity.end_session(token)
    return no_store_json({"message": "Signed out"})
