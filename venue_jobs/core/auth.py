from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from venue_jobs.core.config import settings

# Security configuration
security = HTTPBearer()


def create_service_token(service_name: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create a service-to-service authentication token."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=24))
    data = {
        "sub": service_name,
        "type": "service",
        "service": service_name,
        "exp": expire,
    }
    return jwt.encode(data, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


async def verify_service_token(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> Dict[str, Any]:
    """Verify service-to-service token."""
    try:
        payload = jwt.decode(credentials.credentials, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid service token",
        )

    if payload.get("type") != "service":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid service token",
        )
    return payload
