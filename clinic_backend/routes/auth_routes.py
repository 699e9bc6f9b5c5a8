import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_backend.auth import jwt_handler
from clinic_backend.auth.dependencies import get_current_user
from clinic_backend.core.config import Settings, get_settings
from clinic_backend.core.errors import StoreUnavailableError
from clinic_backend.database import get_db
from clinic_backend.models.user import ROLES, User
from clinic_backend.services import accounts

router = APIRouter(tags=['auth'])
logger = logging.getLogger(__name__)


class LoginRequest(BaseModel):
    username: str
    password: str
    role: str

    @field_validator('username')
    @classmethod
    def normalize_username(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Username is required.')
        return normalized

    @field_validator('role')
    @classmethod
    def validate_role(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in ROLES:
            raise ValueError('Invalid role.')
        return normalized


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = 'bearer'
    role: str
    id: int
    name: str | None = None


class MeResponse(BaseModel):
    id: int
    username: str
    name: str | None = None
    role: str

    class Config:
        from_attributes = True


@router.post('/login', response_model=LoginResponse)
def login(
    data: LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    try:
        user = accounts.authenticate(db, data.username, data.password, data.role)
    except SQLAlchemyError as exc:
        logger.exception('Login lookup failed')
        raise StoreUnavailableError() from exc

    token = jwt_handler.create_access_token(settings, subject=str(user.id), role=user.role)
    return LoginResponse(access_token=token, role=user.role, id=user.id, name=user.name)


@router.get('/me', response_model=MeResponse)
def me(current_user: User = Depends(get_current_user)):
    return current_user
