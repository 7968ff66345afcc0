import logging
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI, Depends, Response, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from app import crud, models, schemas
from app.auth import get_current_user
from app.config import CORS_ORIGINS, LOG_LEVEL
from app.db import engine, get_db
from app.exceptions import register_exception_handlers

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    models.Base.metadata.create_all(bind=engine)
    logger.info("Contact book API started")
    yield
    logger.info("Contact book API shutting down")


app = FastAPI(title="Contact Book API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.get("/health")
def health():
    return schemas.Envelope(data={"status": "ok"})


@app.post("/auth/register", response_model=schemas.Envelope[schemas.AuthResponse], status_code=status.HTTP_201_CREATED)
def register_user(user: schemas.UserCreate, db: Session = Depends(get_db)):
    """
    Реєструє нового користувача та повертає токен доступу.

    :param user: Дані нового користувача (email, пароль, ім'я).
    :param db: Сесія бази даних.
    :return: Інформація про користувача з токеном доступу.
    :raises ConflictError: Якщо користувач з таким email уже існує.
    """
    return schemas.Envelope(data=crud.create_user(db, user))


@app.post("/auth/login", response_model=schemas.Envelope[schemas.AuthResponse])
def login_user(credentials: schemas.UserLogin, db: Session = Depends(get_db)):
    """
    Логін користувача за допомогою електронної пошти та пароля.

    :param credentials: Email та пароль.
    :param db: Сесія бази даних.
    :return: Інформація про користувача з токеном доступу.
    :raises UnauthorizedError: Якщо email або пароль не співпадають.
    """
    return schemas.Envelope(data=crud.authenticate_user(db, credentials))


@app.post("/contacts", response_model=schemas.Envelope[schemas.Contact], status_code=status.HTTP_201_CREATED)
def create_contact(
    contact: schemas.ContactCreate,
    db: Session = Depends(get_db),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    """
    Створює новий контакт для поточного користувача.

    :param contact: Ім'я, телефон та необов'язковий email.
    :param db: Сесія бази даних.
    :param current_user: Поточний користувач.
    :return: Створений контакт.
    """
    db_contact = crud.create_contact(db, contact, current_user.id)
    return schemas.Envelope(data=schemas.Contact.model_validate(db_contact))


@app.get("/contacts", response_model=schemas.Envelope[List[schemas.Contact]])
def get_contacts(db: Session = Depends(get_db), current_user: schemas.CurrentUser = Depends(get_current_user)):
    """
    Отримує список контактів поточного користувача, новіші першими.
    """
    contacts = crud.get_contacts(db, current_user.id)
    return schemas.Envelope(data=[schemas.Contact.model_validate(contact) for contact in contacts])


@app.get("/contacts/{contact_id}", response_model=schemas.Envelope[schemas.Contact])
def get_contact(
    contact_id: int,
    db: Session = Depends(get_db),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    db_contact = crud.get_contact(db, contact_id, current_user.id)
    return schemas.Envelope(data=schemas.Contact.model_validate(db_contact))


@app.patch("/contacts/{contact_id}", response_model=schemas.Envelope[schemas.Contact])
def update_contact(
    contact_id: int,
    contact: schemas.ContactUpdate,
    db: Session = Depends(get_db),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    """
    Частково оновлює контакт: змінюються лише передані поля.

    :raises NotFoundError: Якщо контакту не існує.
    :raises ForbiddenError: Якщо контакт належить іншому користувачу.
    """
    db_contact = crud.update_contact(db, contact_id, contact, current_user.id)
    return schemas.Envelope(data=schemas.Contact.model_validate(db_contact))


@app.delete("/contacts/{contact_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_contact(
    contact_id: int,
    db: Session = Depends(get_db),
    current_user: schemas.CurrentUser = Depends(get_current_user),
):
    crud.delete_contact(db, contact_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
