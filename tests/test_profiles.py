import unittest

from db import InMemoryDocumentStore
from errors import AuthError, NotFoundError, ValidationError
from models import USERS, Role
from security import SignedTokenAuthProvider
from services.profiles import ProfileStore
from support import FakeClock


def registration(**overrides):
    fields = {
        "role": "donor",
        "name": "Alice",
        "email": "alice@example.com",
        "phone": "555-0100",
        "identity_document": "ID-123",
        "address": "Rua A, 1",
        "city": "Porto",
        "state": "PT",
        "zip_code": "4000-001",
        "password": "s3cret",
    }
    fields.update(overrides)
    return fields


class ProfileStoreTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()
        self.auth = SignedTokenAuthProvider("test-secret")
        self.profiles = ProfileStore(self.store, self.auth, clock=FakeClock())

    def _stored(self, user_id):
        return self.store.collection(USERS).doc(user_id).get().to_dict()

    def test_register_hashes_password(self):
        user = self.profiles.register(registration())
        self.assertEqual(user.role, Role.DONOR)
        self.assertEqual(user.email, "alice@example.com")

        stored = self._stored(user.id)
        self.assertNotIn("password", stored)
        self.assertNotEqual(stored["password_hash"], "s3cret")
        self.assertTrue(self.auth.verify("s3cret", stored["password_hash"]))

    def test_register_requires_all_fields(self):
        with self.assertRaises(ValidationError):
            self.profiles.register(registration(phone=""))
        fields = registration()
        del fields["zip_code"]
        with self.assertRaises(ValidationError):
            self.profiles.register(fields)

    def test_register_rejects_unknown_role(self):
        with self.assertRaises(ValidationError):
            self.profiles.register(registration(role="admin"))

    def test_email_is_unique(self):
        self.profiles.register(registration())
        with self.assertRaises(ValidationError):
            self.profiles.register(registration(name="Other"))

    def test_email_domain_case_is_normalized(self):
        user = self.profiles.register(registration(email=" Alice@Example.COM "))
        self.assertEqual(user.email, "Alice@example.com")
        token = self.profiles.authenticate("Alice@Example.COM", "s3cret")
        self.assertEqual(self.profiles.identify(token).id, user.id)
        self.profiles.authenticate("Alice@example.com", "s3cret")
        with self.assertRaises(ValidationError):
            self.profiles.register(registration(email="Alice@EXAMPLE.com"))

    def test_register_rejects_malformed_email(self):
        for email in ("not-an-email", "alice@", "@example.com"):
            with self.subTest(email=email):
                with self.assertRaises(ValidationError):
                    self.profiles.register(registration(email=email))
        self.assertEqual(self.store.collection(USERS).get(), [])

    def test_authenticate_and_identify(self):
        user = self.profiles.register(registration())
        token = self.profiles.authenticate("alice@example.com", "s3cret")
        self.assertEqual(self.auth.verify_token(token)["id"], user.id)
        self.assertEqual(self.profiles.identify(token).id, user.id)

    def test_authenticate_failures(self):
        self.profiles.register(registration())
        with self.assertRaises(AuthError):
            self.profiles.authenticate("alice@example.com", "wrong")
        with self.assertRaises(AuthError):
            self.profiles.authenticate("nobody@example.com", "s3cret")
        with self.assertRaises(ValidationError):
            self.profiles.authenticate("", "s3cret")

    def test_identify_deleted_user(self):
        user = self.profiles.register(registration())
        token = self.profiles.authenticate("alice@example.com", "s3cret")
        self.store.collection(USERS).doc(user.id).delete()
        with self.assertRaises(AuthError):
            self.profiles.identify(token)

    def test_get_hides_password_hash(self):
        user = self.profiles.register(registration())
        profile = self.profiles.get(user.id)
        self.assertEqual(profile.name, "Alice")
        self.assertNotIn("password_hash", profile.model_dump())
        with self.assertRaises(NotFoundError):
            self.profiles.get("missing")

    def test_update_never_changes_role(self):
        user = self.profiles.register(registration())
        updated = self.profiles.update(user.id, {"role": "admin", "name": "Alicia"})
        self.assertEqual(updated.role, Role.DONOR)
        self.assertEqual(updated.name, "Alicia")
        self.assertEqual(self._stored(user.id)["role"], "donor")

    def test_update_hashes_new_password(self):
        user = self.profiles.register(registration())
        self.profiles.update(user.id, {"password": "n3w"})

        stored = self._stored(user.id)
        self.assertNotIn("password", stored)
        self.assertTrue(self.auth.verify("n3w", stored["password_hash"]))
        self.profiles.authenticate("alice@example.com", "n3w")

    def test_update_ignores_raw_hash(self):
        user = self.profiles.register(registration())
        before = self._stored(user.id)["password_hash"]
        self.profiles.update(user.id, {"password_hash": "forged"})
        self.assertEqual(self._stored(user.id)["password_hash"], before)

    def test_update_email_must_stay_unique(self):
        self.profiles.register(registration())
        bob = self.profiles.register(registration(name="Bob", email="bob@example.com"))
        with self.assertRaises(ValidationError):
            self.profiles.update(bob.id, {"email": "alice@example.com"})
        self.assertEqual(self.profiles.update(bob.id, {"email": "bob@example.com"}).email, "bob@example.com")

    def test_update_rejects_malformed_email(self):
        user = self.profiles.register(registration())
        with self.assertRaises(ValidationError):
            self.profiles.update(user.id, {"email": "alice.example.com"})
        self.assertEqual(self.profiles.get(user.id).email, "alice@example.com")

    def test_update_missing_user(self):
        with self.assertRaises(NotFoundError):
            self.profiles.update("missing", {"name": "x"})


if __name__ == "__main__":
    unittest.main()
