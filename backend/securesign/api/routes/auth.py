from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from securesign.api.deps import get_current_user, get_db
from securesign.models.user import User
from securesign.schemas.auth import LoginRequest, RegisterRequest, Token, UserRead
from securesign.services.auth import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, session: Session = Depends(get_db)) -> Token:
    auth_service = AuthService(session)
    try:
        user = auth_service.register(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return auth_service.issue_token(user)


@router.post("/login", response_model=Token)
def login(payload: LoginRequest, session: Session = Depends(get_db)) -> Token:
    try:
        return AuthService(session).authenticate(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc


@router.get("/me", response_model=UserRead)
def me(current_user: User = Depends(get_current_user)) -> User:
    return current_user
