from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from safeballot.config import SECRET_KEY, ALGORITHM, VOTER_TOKEN_EXPIRE_MINUTES


# Create a voter-scoped JWT for a single ballot
def create_voter_token(ballot_id: str, voter_id: Optional[str] = None,
                       expires_delta: int = VOTER_TOKEN_EXPIRE_MINUTES) -> str:
    to_encode = {
        "sub": voter_id or "anonymous-voter",
        "ballot_id": str(ballot_id),
        "role": "voter",
    }
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_delta)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


# Decode a voter token; returns None when the signature or expiry is bad
def decode_voter_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None


def bearer(token: str) -> str:
    return token if token.startswith("Bearer ") else f"Bearer {token}"
