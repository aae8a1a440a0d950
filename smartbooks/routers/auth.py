import logging

from fastapi import APIRouter, Depends, HTTPException, status

from smartbooks.core.security import (
    create_access_token,
    get_current_user_id,
    get_password_hash,
    verify_password,
)
from smartbooks.db import dynamo
from smartbooks.models.user import ProfileUpdate, UserCreate, UserInDB, UserLogin, UserPublic

router = APIRouter()
logger = logging.getLogger(__name__)


def _public(user: dict) -> UserPublic:
    return UserPublic(
        user_id=user["user_id"],
        email=user["email"],
        full_name=user.get("full_name", ""),
        business_name=user.get("business_name"),
        created_at=user.get("created_at", ""),
    )


@router.post("/register", response_model=UserPublic, status_code=status.HTTP_201_CREATED)
def register(user: UserCreate):
    # Check if user already exists
    existing = dynamo.get_user_by_email(user.email)
    if existing:
        raise HTTPException(status_code=400, detail="User already exists")

    user_db = UserInDB(
        email=user.email,
        password_hash=get_password_hash(user.password),
        full_name=user.full_name,
        business_name=user.business_name,
    )

    success = dynamo.put_user(user_db.model_dump())
    if not success:
        raise HTTPException(status_code=500, detail="Error saving user")

    logger.info(f"Registered user {user_db.user_id}")
    return _public(user_db.model_dump())


@router.post("/login")
def login(login_data: UserLogin):
    logger.info(f"Login attempt for email: {login_data.email}")
    user = dynamo.get_user_by_email(login_data.email)

    if not user:
        logger.warning(f"User not found: {login_data.email}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    if not verify_password(login_data.password, user["password_hash"]):
        logger.warning(f"Invalid password for user: {login_data.email}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    access_token = create_access_token(data={"sub": user["user_id"]})
    logger.info(f"Login successful for user: {login_data.email}")

    return {
        "access_token": access_token,
        "token_type": "bearer",
        "user": _public(user).model_dump(),
    }


@router.get("/me", response_model=UserPublic)
def get_current_user(user_id: str = Depends(get_current_user_id)):
    """Get current user profile"""
    user = dynamo.get_user_by_id(user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return _public(user)


@router.put("/me", response_model=UserPublic)
def update_current_user(profile: ProfileUpdate, user_id: str = Depends(get_current_user_id)):
    """Update full name and business name"""
    updates = profile.model_dump(exclude_unset=True)
    # business_name may be cleared, full_name may not
    if updates.get("full_name", "") is None:
        del updates["full_name"]
    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")

    if not dynamo.get_user_by_id(user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    updated = dynamo.update_user(user_id, updates)
    if not updated:
        raise HTTPException(status_code=500, detail="Failed to update profile")
    return _public(updated)
