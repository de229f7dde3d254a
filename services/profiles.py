import logging
from typing import Callable, Mapping, Optional

from email_validator import EmailNotValidError, validate_email

from db import DocumentSnapshot, DocumentStore
from errors import AuthError, NotFoundError, ValidationError
from models import USERS, Role, User, is_blank, parse_choice, utcnow
from schemas import UserRead
from security import AuthProvider

logger = logging.getLogger(__name__)

REGISTRATION_FIELDS = (
    "role",
    "name",
    "email",
    "phone",
    "identity_document",
    "address",
    "city",
    "state",
    "zip_code",
    "password",
)
# No role: it cannot be changed through a profile edit.
UPDATABLE_FIELDS = (
    "name",
    "email",
    "phone",
    "identity_document",
    "address",
    "city",
    "state",
    "zip_code",
)


def _to_user(snapshot: DocumentSnapshot) -> User:
    return User.model_validate({"id": snapshot.id, **snapshot.to_dict()})


def _public(user: User) -> UserRead:
    return UserRead.model_validate(user.model_dump(exclude={"password_hash"}))


def normalize_email(email: str) -> str:
    """
    Canonical form of an address, used both to store and to look it up.
    The domain is lowercased; the local part keeps its case.
    """
    try:
        return validate_email(email.strip(), check_deliverability=False).normalized
    except EmailNotValidError as exc:
        raise ValidationError(f"Invalid email: {exc}") from None


class ProfileStore:
    def __init__(
        self,
        store: DocumentStore,
        auth: AuthProvider,
        clock: Callable = utcnow,
    ):
        self._users = store.collection(USERS)
        self._auth = auth
        self._clock = clock

    def _find_by_email(self, email: str) -> Optional[User]:
        snapshots = self._users.where("email", "==", email).get()
        if not snapshots:
            return None
        return _to_user(snapshots[0])

    def _load(self, user_id: str) -> User:
        if is_blank(user_id):
            raise NotFoundError("User not found")
        snapshot = self._users.doc(user_id).get()
        if not snapshot.exists:
            raise NotFoundError("User not found")
        return _to_user(snapshot)

    def register(self, fields: Mapping) -> UserRead:
        """
        Create a user. Every registration field is required and the email
        must not belong to anyone else. Only the password hash is stored.
        """
        if any(is_blank(fields.get(name)) for name in REGISTRATION_FIELDS):
            raise ValidationError("All fields are required")
        role = parse_choice(Role, fields["role"], "role")
        email = normalize_email(fields["email"])
        if self._find_by_email(email) is not None:
            raise ValidationError("User already exists")

        data = {name: fields[name] for name in REGISTRATION_FIELDS if name != "password"}
        data.update(
            role=role.value,
            email=email,
            password_hash=self._auth.hash(fields["password"]),
            created_at=self._clock(),
        )
        ref = self._users.add(data)
        logger.info("User %s registered as %s", ref.id, role.value)
        return _public(User.model_validate({"id": ref.id, **data}))

    def authenticate(self, email: str, password: str) -> str:
        """Check credentials and return a session token."""
        if is_blank(email) or is_blank(password):
            raise ValidationError("Email and password are required")
        user = self._find_by_email(normalize_email(email))
        if user is None:
            raise AuthError("User not found")
        if not self._auth.verify(password, user.password_hash):
            raise AuthError("Incorrect password")
        return self._auth.issue_token({"id": user.id, "email": user.email})

    def identify(self, token: str) -> User:
        claims = self._auth.verify_token(token)
        user_id = claims.get("id")
        if is_blank(user_id):
            raise AuthError("Invalid token")
        snapshot = self._users.doc(user_id).get()
        if not snapshot.exists:
            raise AuthError("User not found for this session")
        return _to_user(snapshot)

    def get(self, user_id: str) -> UserRead:
        return _public(self._load(user_id))

    def update(self, user_id: str, fields: Mapping) -> UserRead:
        """
        Apply a partial profile edit. A plain `password` is hashed before it
        is stored; `role` and unknown keys are dropped.
        """
        self._load(user_id)
        if "role" in fields:
            logger.info("Ignoring role change requested for user %s", user_id)

        changes = {}
        for name in UPDATABLE_FIELDS:
            value = fields.get(name)
            if value is None:
                continue
            if is_blank(value):
                raise ValidationError(f"{name} cannot be empty")
            changes[name] = value

        if "email" in changes:
            changes["email"] = normalize_email(changes["email"])
            existing = self._find_by_email(changes["email"])
            if existing is not None and existing.id != user_id:
                raise ValidationError("Email already in use")

        password = fields.get("password")
        if not is_blank(password):
            changes["password_hash"] = self._auth.hash(password)

        if changes:
            self._users.doc(user_id).update(changes)
            logger.info("Profile %s updated (%s)", user_id, ", ".join(sorted(changes)))
        return self.get(user_id)
