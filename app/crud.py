import enum
import logging
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app import models, schemas
from app.auth import hash_password, verify_password, create_access_token
from app.exceptions import ConflictError, ForbiddenError, NotFoundError, UnauthorizedError

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.scalars(select(models.User).where(models.User.email == email)).first()


def _auth_response(user: models.User) -> schemas.AuthResponse:
    return schemas.AuthResponse(
        id=user.id,
        email=user.email,
        name=user.name,
        access_token=create_access_token(user),
    )


def create_user(db: Session, user: schemas.UserCreate) -> schemas.AuthResponse:
    """
    Реєструє нового користувача і видає йому токен доступу.

    :param db: Сесія бази даних.
    :param user: Email, пароль та ім'я нового користувача.
    :return: Дані користувача разом з токеном.
    :raises ConflictError: Якщо email вже зареєстровано.
    """
    if get_user_by_email(db, user.email) is not None:
        raise ConflictError("Email is already registered")

    db_user = models.User(email=user.email, password=hash_password(user.password), name=user.name)
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError:
        # concurrent registration with the same email
        db.rollback()
        raise ConflictError("Email is already registered")
    db.refresh(db_user)
    logger.info("Registered user id=%s email=%s", db_user.id, db_user.email)
    return _auth_response(db_user)


def authenticate_user(db: Session, credentials: schemas.UserLogin) -> schemas.AuthResponse:
    """
    Перевіряє облікові дані та видає токен доступу.

    Невідомий email і невірний пароль дають однакову помилку.

    :raises UnauthorizedError: Якщо облікові дані невірні.
    """
    db_user = get_user_by_email(db, credentials.email)
    if db_user is None or not verify_password(credentials.password, db_user.password):
        logger.info("Failed login for email=%s", credentials.email)
        raise UnauthorizedError(INVALID_CREDENTIALS)
    return _auth_response(db_user)


class Ownership(enum.Enum):
    OWNED = "owned"
    NOT_OWNED = "not_owned"
    NOT_FOUND = "not_found"


def _lookup_contact(db: Session, contact_id: int, user_id: int) -> Tuple[Ownership, Optional[models.Contact]]:
    contact = db.get(models.Contact, contact_id)
    if contact is None:
        return Ownership.NOT_FOUND, None
    if contact.user_id != user_id:
        return Ownership.NOT_OWNED, contact
    return Ownership.OWNED, contact


def create_contact(db: Session, contact: schemas.ContactCreate, user_id: int) -> models.Contact:
    db_contact = models.Contact(**contact.model_dump(), user_id=user_id)
    db.add(db_contact)
    db.commit()
    db.refresh(db_contact)
    logger.info("User id=%s created contact id=%s", user_id, db_contact.id)
    return db_contact


def get_contacts(db: Session, user_id: int) -> List[models.Contact]:
    stmt = (
        select(models.Contact)
        .where(models.Contact.user_id == user_id)
        .order_by(models.Contact.created_at.desc(), models.Contact.id.desc())
    )
    return list(db.scalars(stmt).all())


def get_contact(db: Session, contact_id: int, user_id: int) -> models.Contact:
    """
    Повертає контакт, якщо він існує і належить користувачу.

    Існування перевіряється раніше за власника, тому чужий контакт дає 403, а не 404.

    :raises NotFoundError: Якщо контакту з таким id немає.
    :raises ForbiddenError: Якщо контакт належить іншому користувачу.
    """
    ownership, contact = _lookup_contact(db, contact_id, user_id)
    if ownership is Ownership.NOT_FOUND:
        raise NotFoundError("Contact not found")
    if ownership is Ownership.NOT_OWNED:
        logger.warning("User id=%s denied access to contact id=%s", user_id, contact_id)
        raise ForbiddenError("You do not have access to this contact")
    return contact


def update_contact(db: Session, contact_id: int, contact: schemas.ContactUpdate, user_id: int) -> models.Contact:
    db_contact = get_contact(db, contact_id, user_id)
    for key, value in contact.model_dump(exclude_unset=True).items():
        setattr(db_contact, key, value)
    db_contact.updated_at = models.utcnow()
    db.commit()
    db.refresh(db_contact)
    logger.info("User id=%s updated contact id=%s", user_id, contact_id)
    return db_contact


def delete_contact(db: Session, contact_id: int, user_id: int) -> None:
    db_contact = get_contact(db, contact_id, user_id)
    db.delete(db_contact)
    db.commit()
    logger.info("User id=%s deleted contact id=%s", user_id, contact_id)
