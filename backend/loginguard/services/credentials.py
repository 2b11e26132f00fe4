"""
Password verification for the login endpoint.

Accounts come from configuration as email -> passlib hash. Unknown emails
are verified against a dummy hash so response time does not reveal which
accounts exist.
"""

from passlib.context import CryptContext

password_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

_DUMMY_HASH = password_context.hash("loginguard-dummy-password")


def get_password_hash(password: str) -> str:
    return password_context.hash(password)


class CredentialVerifier:
    """Checks an email/password pair against a fixed account table."""

    def __init__(self, accounts: dict[str, str]) -> None:
        self._accounts = {email.strip().lower(): hashed for email, hashed in accounts.items()}

    def verify(self, email: str, password: str) -> bool:
        hashed = self._accounts.get(email.strip().lower())
        if hashed is None:
            password_context.verify(password, _DUMMY_HASH)
            return False
        return password_context.verify(password, hashed)

    def __contains__(self, email: str) -> bool:
        return email.strip().lower() in self._accounts
