from sqlmodel import Session, select

from securesign.core.logging_setup import logger
from securesign.models.user import User
from securesign.schemas.auth import LoginRequest, RegisterRequest, Token
from securesign.utils.email_validation import normalize_email
from securesign.utils.security import create_access_token, get_password_hash, verify_password


class AuthService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def register(self, payload: RegisterRequest) -> User:
        email = normalize_email(payload.email)
        existing = self.session.exec(select(User).where(User.email == email)).first()
        if existing:
            raise ValueError("User already exists")

        user = User(
            email=email,
            full_name=payload.full_name.strip(),
            password_hash=get_password_hash(payload.password),
        )
        self.session.add(user)
        self.session.commit()
        self.session.refresh(user)
        logger.info("User %s registered", user.email)
        return user

    def authenticate(self, payload: LoginRequest) -> Token:
        email = normalize_email(payload.email)
        user = self.session.exec(select(User).where(User.email == email)).first()

        if not user or not user.is_active:
            raise ValueError("Invalid credentials")
        if not verify_password(payload.password, user.password_hash):
            raise ValueError("Invalid credentials")

        return self.issue_token(user)

    @staticmethod
    def issue_token(user: User) -> Token:
        return Token(access_token=create_access_token(str(user.id)))
