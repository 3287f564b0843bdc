# mcp_widget_runtime/common/verify_credentials.py
import os
from typing import Optional, Sequence

import jwt
from jwt import PyJWTError
from starlette.exceptions import HTTPException
from starlette.status import HTTP_401_UNAUTHORIZED

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "my-test-key")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")


async def validate_token(
    token: str,
    secret: Optional[str] = None,
    algorithms: Optional[Sequence[str]] = None,
) -> dict:
    """Decode a bearer JWT; raises 401 ``HTTPException`` when it is expired or invalid."""
    try:
        payload = jwt.decode(
            token,
            secret or JWT_SECRET_KEY,
            algorithms=list(algorithms or [JWT_ALGORITHM]),
        )
        payload["token"] = token
        return payload
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except PyJWTError:
        raise HTTPException(
            status_code=HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
