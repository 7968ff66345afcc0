import unittest
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app import auth, crud, models, schemas
from app.exceptions import ConflictError, ForbiddenError, NotFoundError, UnauthorizedError


class TestCRUD(unittest.TestCase):

    def setUp(self):
        self.mock_db = MagicMock(Session)

    def _assign_id(self, obj):
        obj.id = 1

    def test_get_user_by_email(self):
        email = "test@example.com"
        mock_user = models.User(email=email, password="hashed_password", name="Test")
        self.mock_db.scalars().first.return_value = mock_user

        user = crud.get_user_by_email(self.mock_db, email)
        self.assertIsNotNone(user)
        self.assertEqual(user.email, email)

    def test_create_user(self):
        user_data = schemas.UserCreate(email="newuser@example.com", password="password", name="New User")
        self.mock_db.scalars().first.return_value = None
        self.mock_db.refresh.side_effect = self._assign_id

        created = crud.create_user(self.mock_db, user_data)

        self.assertEqual(created.id, 1)
        self.assertEqual(created.email, user_data.email)
        self.assertEqual(created.name, "New User")
        self.assertTrue(created.access_token)
        self.mock_db.add.assert_called_once()
        self.mock_db.commit.assert_called_once()

        stored = self.mock_db.add.call_args[0][0]
        self.assertNotEqual(stored.password, "password")
        self.assertTrue(auth.verify_password("password", stored.password))

    def test_create_user_existing_email(self):
        user_data = schemas.UserCreate(email="taken@example.com", password="password", name="Other Name")
        self.mock_db.scalars().first.return_value = models.User(email=user_data.email, password="x", name="First")

        with self.assertRaises(ConflictError):
            crud.create_user(self.mock_db, user_data)
        self.mock_db.add.assert_not_called()

    def test_create_user_unique_violation_on_commit(self):
        user_data = schemas.UserCreate(email="race@example.com", password="password", name="Racer")
        self.mock_db.scalars().first.return_value = None
        self.mock_db.commit.side_effect = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

        with self.assertRaises(ConflictError):
            crud.create_user(self.mock_db, user_data)
        self.mock_db.rollback.assert_called_once()

    def test_login_errors_do_not_reveal_which_field_was_wrong(self):
        self.mock_db.scalars().first.return_value = None
        with self.assertRaises(UnauthorizedError) as unknown:
            crud.authenticate_user(self.mock_db, schemas.UserLogin(email="ghost@example.com", password="pw12345"))

        stored = models.User(id=1, email="user@example.com", password=auth.hash_password("right-password"), name="U")
        self.mock_db.scalars().first.return_value = stored
        with self.assertRaises(UnauthorizedError) as wrong:
            crud.authenticate_user(self.mock_db, schemas.UserLogin(email="user@example.com", password="wrong-password"))

        self.assertEqual(unknown.exception.message, wrong.exception.message)

    def test_create_contact(self):
        contact_data = schemas.ContactCreate(name="John Doe", email="john@example.com", phone="123456789")

        created = crud.create_contact(self.mock_db, contact_data, user_id=7)

        self.assertEqual(created.name, "John Doe")
        self.assertEqual(created.user_id, 7)
        self.mock_db.add.assert_called_once()
        self.mock_db.commit.assert_called_once()

    def test_lookup_contact_outcomes(self):
        self.mock_db.get.return_value = None
        self.assertEqual(crud._lookup_contact(self.mock_db, 1, 1), (crud.Ownership.NOT_FOUND, None))

        contact = models.Contact(id=1, name="A", phone="1", user_id=2)
        self.mock_db.get.return_value = contact
        self.assertEqual(crud._lookup_contact(self.mock_db, 1, 1), (crud.Ownership.NOT_OWNED, contact))
        self.assertEqual(crud._lookup_contact(self.mock_db, 1, 2), (crud.Ownership.OWNED, contact))

    def test_delete_foreign_contact_is_forbidden(self):
        self.mock_db.get.return_value = models.Contact(id=3, name="A", phone="1", user_id=2)

        with self.assertRaises(ForbiddenError):
            crud.delete_contact(self.mock_db, 3, user_id=1)
        self.mock_db.delete.assert_not_called()


def _make_user(db, email):
    user = models.User(email=email, password=auth.hash_password("pw12345"), name=email.split("@")[0])
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def test_contacts_listed_newest_first(db_session):
    owner = _make_user(db_session, "owner@example.com")
    other = _make_user(db_session, "other@example.com")
    created = [
        crud.create_contact(db_session, schemas.ContactCreate(name=f"C{i}", phone=str(i)), owner.id)
        for i in range(3)
    ]
    crud.create_contact(db_session, schemas.ContactCreate(name="Foreign", phone="0"), other.id)

    listed = crud.get_contacts(db_session, owner.id)

    assert [c.id for c in listed] == [c.id for c in reversed(created)]
    assert all(c.user_id == owner.id for c in listed)


def test_get_contact_round_trip(db_session):
    owner = _make_user(db_session, "owner@example.com")
    created = crud.create_contact(
        db_session, schemas.ContactCreate(name="Bob", phone="+1", email="bob@example.com"), owner.id
    )

    fetched = crud.get_contact(db_session, created.id, owner.id)

    assert schemas.Contact.model_validate(fetched) == schemas.Contact.model_validate(created)


def test_foreign_contact_is_forbidden_not_missing(db_session):
    owner = _make_user(db_session, "owner@example.com")
    intruder = _make_user(db_session, "intruder@example.com")
    contact = crud.create_contact(db_session, schemas.ContactCreate(name="Bob", phone="+1"), owner.id)

    with pytest.raises(ForbiddenError):
        crud.get_contact(db_session, contact.id, intruder.id)
    with pytest.raises(ForbiddenError):
        crud.update_contact(db_session, contact.id, schemas.ContactUpdate(name="Hacked"), intruder.id)
    with pytest.raises(ForbiddenError):
        crud.delete_contact(db_session, contact.id, intruder.id)
    with pytest.raises(NotFoundError):
        crud.get_contact(db_session, contact.id + 100, owner.id)

    assert crud.get_contact(db_session, contact.id, owner.id).name == "Bob"


def test_partial_update_keeps_other_fields(db_session):
    owner = _make_user(db_session, "owner@example.com")
    contact = crud.create_contact(
        db_session, schemas.ContactCreate(name="Bob", phone="+1", email="bob@example.com"), owner.id
    )

    updated = crud.update_contact(db_session, contact.id, schemas.ContactUpdate(phone="+2"), owner.id)
    assert (updated.name, updated.phone, updated.email) == ("Bob", "+2", "bob@example.com")

    before = updated.updated_at
    unchanged = crud.update_contact(db_session, contact.id, schemas.ContactUpdate(), owner.id)
    assert (unchanged.name, unchanged.phone, unchanged.email) == ("Bob", "+2", "bob@example.com")
    assert unchanged.user_id == owner.id
    assert unchanged.updated_at >= before
    assert unchanged.updated_at.tzinfo is not None


def test_deleted_contact_is_not_found(db_session):
    owner = _make_user(db_session, "owner@example.com")
    contact = crud.create_contact(db_session, schemas.ContactCreate(name="Bob", phone="+1"), owner.id)

    crud.delete_contact(db_session, contact.id, owner.id)

    with pytest.raises(NotFoundError):
        crud.get_contact(db_session, contact.id, owner.id)


if __name__ == "__main__":
    unittest.main()
