import jwt
import base64
from datetime import datetime, timedelta, timezone
from app.config import settings, logger
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC


# Derive a secret key as a string for JWT signing.
def get_secret_key() -> str:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=b"marketplace_moderation_static_salt",
        iterations=480000,
    )
    key = base64.urlsafe_b64encode(kdf.derive(settings.JWT_SECRET_KEY.encode()))
    return key.decode()


def get_fernet_key() -> Fernet:
    secret_bytes = get_secret_key().encode("utf-8")
    return Fernet(secret_bytes)


# signs the payload with JWT and then encrypts the resulting token using Fernet.
def encrypt_payload(payload: dict) -> str:
    token = jwt.encode(payload, get_secret_key(), algorithm="HS256")
    if isinstance(token, bytes):
        token = token.decode("utf-8")
    encrypted = get_fernet_key().encrypt(token.encode("utf-8"))
    return encrypted.decode("utf-8")


def decrypt_payload(token: str) -> dict | None:
    try:
        decrypted_token = get_fernet_key().decrypt(token.encode("utf-8")).decode("utf-8")
        return jwt.decode(decrypted_token, get_secret_key(), algorithms=["HS256"])
    except (InvalidToken, jwt.PyJWTError) as e:
        logger.error(f"Error during decryption: {str(e)}")
        return None


# Create an access token that expires after 'expires_delta' minutes.
def create_access_token(user_id: str, expires_delta: int = 60) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_delta)
    payload = {"sub": user_id, "exp": expire.timestamp(), "type": "access"}
    return encrypt_payload(payload)


def verify_token(token: str, token_type: str = None) -> str | None:
    payload = decrypt_payload(token)
    if not payload:
        return None

    exp = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
    if datetime.now(timezone.utc) >= exp:
        logger.error("Token expired")
        return None

    if token_type and payload.get("type") != token_type:
        logger.error(f"Token type mismatch: expected {token_type}, got {payload.get('type')}")
        return None

    return payload.get("sub")


def verify_access_token(token: str) -> str | None:
    return verify_token(token, "access")
