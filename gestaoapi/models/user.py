from enum import Enum

from pydantic import Field

from gestaoapi.models.base import CamelModel


class UserRole(str, Enum):
    VIEWER = "VIEWER"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"


class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class User(CamelModel):
    id: int | None = None
    name: str
    email: str
    role: UserRole = UserRole.VIEWER
    status: UserStatus = UserStatus.ACTIVE
    password_hash: str | None = Field(default=None, exclude=True)


class UserIn(CamelModel):
    name: str
    email: str
    password: str
    role: UserRole = UserRole.VIEWER
    status: UserStatus = UserStatus.ACTIVE


class UserUpdateIn(CamelModel):
    name: str | None = None
    email: str | None = None
    password: str | None = None
    role: UserRole | None = None
    status: UserStatus | None = None


class LoginIn(CamelModel):
    email: str
    password: str
