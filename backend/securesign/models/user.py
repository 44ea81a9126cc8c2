from sqlmodel import Field

from securesign.models.base import TimestampedModel, UUIDModel


class User(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "users"

    email: str = Field(index=True, unique=True)
    full_name: str
    password_hash: str
    is_active: bool = Field(default=True)
