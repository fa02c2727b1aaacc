from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, EmailStr, field_validator
from typing import Optional
from database import get_db
from models.user import User, UserType
from utils.security import hash_password, verify_password, create_access_token
from utils.dependencies import get_current_active_user
from utils.exceptions import ConflictError
import logging
import re

# Set up logging
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


# ============================================================================
# SCHEMAS
# ============================================================================

class RegisterRequest(BaseModel):
    full_name: str
    email: EmailStr
    phone_number: Optional[str] = None
    password: str
    user_type: UserType = UserType.customer

    @field_validator('full_name')
    @classmethod
    def validate_full_name(cls, v):
        """Validate full name"""
        if not v or len(v.strip()) < 2:
            raise ValueError('Full name must be at least 2 characters')
        if len(v) > 100:
            raise ValueError('Full name cannot exceed 100 characters')
        return v.strip()

    @field_validator('phone_number')
    @classmethod
    def validate_phone(cls, v):
        """Validate phone number format"""
        if v is None:
            return v
        phone_pattern = r'^\+?\d{9,15}$'
        if not re.match(phone_pattern, v.replace(' ', '').replace('-', '')):
            raise ValueError('Invalid phone number format')
        return v

    @field_validator('password')
    @classmethod
    def validate_password(cls, v):
        if len(v.encode('utf-8')) > 72:
            raise ValueError('Password must be no longer than 72 bytes when encoded in UTF-8')
        if len(v) < 8:
            raise ValueError('Password must be at least 8 characters')
        return v

    @field_validator('user_type')
    @classmethod
    def validate_user_type(cls, v):
        # Admin accounts are provisioned out of band
        if v == UserType.admin:
            raise ValueError('Cannot self-register as admin')
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


def user_to_dict(user: User) -> dict:
    return {
        "user_id": user.user_id,
        "email": user.email,
        "full_name": user.full_name,
        "user_type": user.user_type.value,
        "phone_number": user.phone_number,
        "is_active": user.is_active,
    }


def _token_for(user: User) -> str:
    return create_access_token(
        data={
            "sub": str(user.user_id),
            "email": user.email,
            "user_type": user.user_type.value,
        }
    )


# ============================================================================
# ENDPOINTS
# ============================================================================

@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(request: RegisterRequest, db: Session = Depends(get_db)):
    """Create a customer or rider account and return a bearer token"""

    if db.query(User).filter(User.email == request.email).first():
        raise ConflictError("Email already registered")

    user = User(
        full_name=request.full_name,
        email=request.email,
        phone_number=request.phone_number,
        password_hash=hash_password(request.password),
        user_type=request.user_type,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"✅ New {user.user_type.value} registered: {user.email}")
    return {
        "success": True,
        "message": "Registration successful",
        "access_token": _token_for(user),
        "token_type": "bearer",
        "user": user_to_dict(user),
    }


@router.post("/login")
def login(request: LoginRequest, db: Session = Depends(get_db)):
    """Login user and return a JWT access token"""

    user = db.query(User).filter(User.email == request.email).first()

    if not user or not verify_password(request.password, user.password_hash):
        logger.warning(f"Failed login attempt for: {request.email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials"
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive. Please contact support."
        )

    logger.info(f"User logged in: {user.email}")
    return {
        "success": True,
        "message": "Login successful",
        "access_token": _token_for(user),
        "token_type": "bearer",
        "user": user_to_dict(user),
    }


@router.get("/me")
def get_current_user_details(current_user: User = Depends(get_current_active_user)):
    return {
        "success": True,
        "message": "User retrieved successfully",
        "user": user_to_dict(current_user),
    }
