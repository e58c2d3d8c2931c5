from dataclasses import dataclass, field

from fastapi import HTTPException, status
from jose import JWTError, jwt
from starlette.requests import Request

from app.core.config import get_settings


@dataclass
class AuthUser:
    sub: str
    roles: list[str] = field(default_factory=list)
    tenant_id: str | None = None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(request: Request) -> AuthUser:
    auth_header = request.headers.get("authorization", "")
    token = auth_header[len("Bearer ") :] if auth_header.startswith("Bearer ") else ""
    if not token:
        raise _unauthorized("Missing authentication token")

    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise _unauthorized("Invalid token") from exc

    subject = payload.get("sub")
    if not subject:
        raise _unauthorized("Token has no subject")

    roles = payload.get("roles", [])
    if not isinstance(roles, list):
        roles = []
    tenant_id = payload.get("tenant_id")
    return AuthUser(
        sub=str(subject),
        roles=[str(role) for role in roles],
        tenant_id=str(tenant_id) if tenant_id is not None else None,
    )
