from typing import Protocol

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from passlib.context import CryptContext

from errors import AuthError


class AuthProvider(Protocol):
    def hash(self, plaintext: str) -> str:
        ...

    def verify(self, plaintext: str, hashed: str) -> bool:
        ...

    def issue_token(self, claims: dict) -> str:
        ...

    def verify_token(self, token: str) -> dict:
        ...


class SignedTokenAuthProvider:
    """
    Password hashing with passlib and signed, timestamped tokens with
    itsdangerous. Tokens carry the claims they were issued with.
    """

    def __init__(self, secret_key: str, max_age_seconds: int = 60 * 60):
        if not secret_key:
            raise ValueError("secret_key is required")
        self.max_age_seconds = max_age_seconds
        self._serializer = URLSafeTimedSerializer(secret_key, salt="session")
        self._pwd_context = CryptContext(
            schemes=["pbkdf2_sha256"],
            deprecated="auto",
        )

    def hash(self, plaintext: str) -> str:
        return self._pwd_context.hash(plaintext)

    def verify(self, plaintext: str, hashed: str) -> bool:
        try:
            return self._pwd_context.verify(plaintext, hashed)
        except (ValueError, TypeError):
            # Unrecognised or empty stored hash.
            return False

    def issue_token(self, claims: dict) -> str:
        return self._serializer.dumps(claims)

    def verify_token(self, token: str) -> dict:
        """
        Return the claims stored in `token`.
        Raises AuthError if the token is tampered with or older than max age.
        """
        try:
            claims = self._serializer.loads(token, max_age=self.max_age_seconds)
        except SignatureExpired:
            raise AuthError("Session expired, please log in again") from None
        except BadSignature:
            raise AuthError("Invalid token") from None
        if not isinstance(claims, dict):
            raise AuthError("Invalid token")
        return claims
