import os, jwt
from datetime import datetime, timedelta, timezone

JWT_SECRET = os.getenv("JWT_SECRET", "dev_secret_change_me_before_deploying")
JWT_ALG = "HS256"

def create_token(sub: str, role: str = "guardian", expires_delta: timedelta = timedelta(days=7)) -> str:
    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": sub,
        "role": role,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALG)

def decode_token(token: str) -> dict:
    return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG])
