import secrets
import bcrypt
from app.core.config import settings

MAX_BCRYPT_BYTES = 72


def hash_password(password: str) -> str:
    return bcrypt.hashpw(
        password.encode("utf-8")[:MAX_BCRYPT_BYTES],
        bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    ).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode("utf-8")[:MAX_BCRYPT_BYTES], hashed.encode("utf-8"))


def generate_otp(length: int = settings.OTP_LENGTH) -> str:
    return "".join(str(secrets.randbelow(10)) for _ in range(length))
