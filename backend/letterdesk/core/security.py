"""
LetterDesk credentials

- Passwords: bcrypt, BCRYPT_ROUNDS (lowered in tests)
- Tokens: JWT access/refresh pair carrying the user id, email and role;
  ``type`` tells them apart so a refresh token cannot be used as a bearer token
"""
from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from jose import JWTError, jwt
import bcrypt
from fastapi import HTTPException, status

from letterdesk.core.config import settings

# bcrypt ignores everything past 72 bytes
BCRYPT_MAX_BYTES = 72


def verify_password(plain_password: str, hashed_password: str) -> bool:
    password_bytes = plain_password.encode('utf-8')[:BCRYPT_MAX_BYTES]
    return bcrypt.checkpw(password_bytes, hashed_password.encode('utf-8'))


def get_password_hash(password: str) -> str:
    """Hash password with BCRYPT_ROUNDS"""
    password_bytes = password.encode('utf-8')[:BCRYPT_MAX_BYTES]
    hashed = bcrypt.hashpw(password_bytes, bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS))
    return hashed.decode('utf-8')


def token_claims(user) -> Dict[str, Any]:
    """Claims identifying a user: id as ``sub``, plus email and role"""
    return {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role.value,
    }


def _encode(data: Dict[str, Any], token_type: str, expires_delta: timedelta) -> str:
    to_encode = data.copy()
    to_encode.update({"exp": datetime.utcnow() + expires_delta, "type": token_type})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    return _encode(
        data,
        "access",
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_refresh_token(data: Dict[str, Any]) -> str:
    return _encode(data, "refresh", timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS))


def create_token_pair(user) -> Dict[str, str]:
    """Fresh access + refresh tokens for a user"""
    claims = token_claims(user)
    return {
        "access_token": create_access_token(claims),
        "refresh_token": create_refresh_token(claims),
        "token_type": "bearer",
    }


def decode_token(token: str) -> Dict[str, Any]:
    """Decode and verify a token; any failure is a 401"""
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
