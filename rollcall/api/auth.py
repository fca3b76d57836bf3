"""JWT-based stateless authentication."""
from fastapi import APIRouter, HTTPException
from pymongo.errors import DuplicateKeyError

from rollcall.api.deps import CurrentUser, create_access_token, get_password_hash, verify_password
from rollcall.api.responses import ok
from rollcall.models.user import User, UserCreate, UserLogin, user_to_dict
from rollcall.services.store import parse_object_id

router = APIRouter()

EMAIL_TAKEN = "Email already exists"


@router.post("/signup", status_code=201)
async def signup(data: UserCreate):
    existing = await User.find_one(User.email == data.email)
    if existing:
        raise HTTPException(status_code=400, detail=EMAIL_TAKEN)
    user = User(
        name=data.name,
        email=data.email,
        hashed_password=get_password_hash(data.password),
        role=data.role,
    )
    try:
        await user.insert()
    except DuplicateKeyError:
        # concurrent signup with the same email won the unique index
        raise HTTPException(status_code=400, detail=EMAIL_TAKEN)
    return ok(user_to_dict(user))


@router.post("/login")
async def login(req: UserLogin):
    user = await User.find_one(User.email == req.email)
    if not user or not verify_password(req.password, user.hashed_password):
        raise HTTPException(status_code=400, detail="Invalid email or password")
    return ok({"token": create_access_token(str(user.id), user.role.value)})


@router.get("/me")
async def me(principal: CurrentUser):
    oid = parse_object_id(principal.user_id)
    user = await User.get(oid) if oid else None
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return ok(user_to_dict(user))
