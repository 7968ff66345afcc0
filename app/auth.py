import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from app import models, schemas
from app.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES, BCRYPT_ROUNDS
from app.db import get_db
from app.exceptions import UnauthorizedError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)
bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user: models.User, expires_delta: Optional[timedelta] = None) -> str:
    """
    Створює JWT токен доступу для користувача.

    :param user: Користувач, якому видається токен.
    :param expires_delta: Час дії токену (за замовчуванням ACCESS_TOKEN_EXPIRE_MINUTES).
    :return: Закодований JWT токен.
    """
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {"sub": str(user.id), "email": user.email, "iat": now, "exp": expire}
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def verify_token(token: str) -> Optional[dict]:
    """
    Перевіряє підпис і термін дії JWT токену.

    :param token: Токен для перевірки.
    :return: Payload токену, якщо він дійсний, інакше None.
    """
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning("Rejected access token: %s", e)
        return None


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> schemas.CurrentUser:
    """
    Отримує поточного користувача з bearer токену.

    :param credentials: Заголовок Authorization.
    :param db: Сесія бази даних.
    :return: Ідентифікатор та email користувача.
    :raises UnauthorizedError: Якщо токен відсутній, недійсний, прострочений або користувача не існує.
    """
    if credentials is None:
        raise UnauthorizedError("Missing bearer token")

    payload = verify_token(credentials.credentials)
    if payload is None:
        raise UnauthorizedError("Invalid or expired token")

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise UnauthorizedError("Invalid or expired token")

    user = db.get(models.User, user_id)
    if user is None:
        logger.warning("Token refers to missing user id=%s", user_id)
        raise UnauthorizedError("User not found")
    return schemas.CurrentUser(id=user.id, email=user.email)
