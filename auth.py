import hashlib
import secrets
from typing import Optional, Tuple


def hash_password(password: str, salt: Optional[str] = None) -> Tuple[str, str]:
    """Return (salt, hash) for a password, generating a salt when none is given."""
    salt = salt or secrets.token_hex(8)
    return salt, hashlib.sha256((salt + password).encode()).hexdigest()


def verify_password(password: str, salt: str, password_hash: str) -> bool:
    _, test_hash = hash_password(password, salt)
    return secrets.compare_digest(test_hash, password_hash)


def public_user(doc: dict) -> dict:
    """Session view of a user document, credentials stripped."""
    return {
        "id": doc["id"],
        "name": doc.get("name"),
        "email": doc.get("email"),
        "role": doc.get("role"),
    }


def normalize_email(email: str) -> str:
    """Lookup key for an email, used both when storing and when logging in."""
    return email.strip().lower()
