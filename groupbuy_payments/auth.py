from typing import Optional

from fastapi import Depends, Header, HTTPException
from jose import JWTError, jwt

from groupbuy_payments.config import Settings, get_settings


def verify_token(authorization: Optional[str] = Header(None), settings: Settings = Depends(get_settings)):
    # Open when no JWT_SECRET is configured
    if not settings.jwt_secret:
        return
    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError(scheme)
        jwt.decode(token, settings.jwt_secret, algorithms=["HS256"])
    except (AttributeError, ValueError, JWTError):
        raise HTTPException(status_code=401, detail="Invalid or missing token")
