from collections.abc import Callable

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from app.core.config import get_settings
from app.core.security import decode_access_token
from app.schemas.actor import ActorContext
from app.services.rbac import has_permission


settings = get_settings()
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=settings.auth_token_url)


def request_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_current_actor(request: Request, token: str = Depends(oauth2_scheme)) -> ActorContext:
    claims = decode_access_token(token)
    if not claims:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    email = claims.get("sub")
    role = claims.get("role")
    try:
        user_id = int(claims["uid"])
    except (KeyError, TypeError, ValueError):
        user_id = None
    if user_id is None or not email or not role:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Incomplete token claims")

    return ActorContext(
        user_id=user_id,
        email=email,
        name=claims.get("name") or "",
        role=role,
        ip_address=request_ip(request),
        user_agent=request.headers.get("user-agent"),
        request_path=request.url.path,
    )


def require_permission(permission: str) -> Callable:
    def checker(actor: ActorContext = Depends(get_current_actor)) -> ActorContext:
        if not has_permission(actor.role, permission):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return actor

    return checker
