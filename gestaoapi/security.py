import datetime
import logging
from typing import Annotated, List, Literal

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from gestaoapi.config import config
from gestaoapi.database import database, user_table, utcnow
from gestaoapi.models.user import User, UserRole, UserStatus

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/users/token")
pwd_context = CryptContext(schemes=["bcrypt"])


def create_unauthorized_exception(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def create_access_token(email: str):
    logger.debug("Creating access token", extra={"email": email})
    expire = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(
        minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    jwt_data = {"sub": email, "exp": expire, "type": "access"}
    return jwt.encode(jwt_data, key=config.SECRET_KEY, algorithm=ALGORITHM)


def get_subject_for_token_type(token: str, type: Literal["access"]) -> str:
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[ALGORITHM])
    except ExpiredSignatureError as e:
        raise create_unauthorized_exception("Token has expired") from e
    except JWTError as e:
        raise create_unauthorized_exception("Invalid token") from e

    email = payload.get("sub")
    if email is None:
        raise create_unauthorized_exception("Token is missing 'sub' field")

    token_type = payload.get("type")
    if token_type is None or token_type != type:
        raise create_unauthorized_exception(
            f"Token has incorrect type, expected '{type}'"
        )

    return email


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def user_from_row(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        role=row.role,
        status=row.status,
        password_hash=row.password_hash,
    )


async def get_user(email: str):
    query = user_table.select().where(user_table.c.email == email)
    row = await database.fetch_one(query)
    return user_from_row(row) if row else None


async def get_user_by_id(user_id: int):
    query = user_table.select().where(user_table.c.id == user_id)
    row = await database.fetch_one(query)
    return user_from_row(row) if row else None


async def authenticate_user(email: str, password: str):
    logger.debug("Authenticating user", extra={"email": email})
    user = await get_user(email)
    if not user:
        raise create_unauthorized_exception("Invalid email or password")
    if not verify_password(password, user.password_hash):
        raise create_unauthorized_exception("Invalid email or password")
    if user.status != UserStatus.ACTIVE:
        raise create_unauthorized_exception("User is inactive")
    return user


async def get_current_user(token: Annotated[str, Depends(oauth2_scheme)]):
    email = get_subject_for_token_type(token, "access")
    user = await get_user(email=email)
    if user is None:
        raise create_unauthorized_exception("Could not find user for this token")
    if user.status != UserStatus.ACTIVE:
        raise create_unauthorized_exception("User is inactive")
    return user


def require_roles(allowed_roles: List[UserRole]):
    async def check_roles(current_user: Annotated[User, Depends(get_current_user)]):
        logger.debug(f"Current user role: {current_user.role}")

        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=403,
                detail="Insufficient permissions",
            )

        return current_user
    return check_roles


async def ensure_bootstrap_admin() -> None:
    """Create the configured administrator when there are no users yet."""
    if not (config.BOOTSTRAP_ADMIN_EMAIL and config.BOOTSTRAP_ADMIN_PASSWORD):
        return
    if await database.fetch_one(user_table.select().limit(1)):
        return
    query = user_table.insert().values(
        name="Administrador",
        email=config.BOOTSTRAP_ADMIN_EMAIL,
        password_hash=get_password_hash(config.BOOTSTRAP_ADMIN_PASSWORD),
        role=UserRole.ADMIN.value,
        status=UserStatus.ACTIVE.value,
        created_at=utcnow(),
    )
    await database.execute(query)
    logger.info("Created bootstrap administrator", extra={"email": config.BOOTSTRAP_ADMIN_EMAIL})
