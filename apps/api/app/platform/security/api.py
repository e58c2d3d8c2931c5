from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core.auth import AuthUser, get_current_user
from app.core.database import get_db
from app.core.modules import RECORD_SCOPED_MODULES
from app.platform.security.access_levels import AccessLevel
from app.platform.security.context import AuthContext
from app.platform.security.errors import ScopeResolutionError, UnknownPrincipalError
from app.platform.security.record_scope import RecordScopeService
from app.platform.security.schemas import RecordScopeRead


router = APIRouter(prefix="/api/security", tags=["security.record_scope"])


def get_record_scope_service(db: Session = Depends(get_db)) -> RecordScopeService:
    return RecordScopeService.for_session(db)


def get_auth_context(request: Request, user: AuthUser = Depends(get_current_user)) -> AuthContext:
    return AuthContext(
        user_id=user.sub,
        tenant_id=user.tenant_id,
        correlation_id=getattr(request.state, "correlation_id", None),
    )


def _describe(service: RecordScopeService, ctx: AuthContext, module: str) -> RecordScopeRead:
    try:
        scope = service.resolve(ctx, module)
    except UnknownPrincipalError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="unknown principal") from exc
    except ScopeResolutionError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="record scope unavailable",
        ) from exc

    return RecordScopeRead(
        module=module,
        access_level=scope.level,
        has_full_access=scope.level == AccessLevel.ALL,
        visible_owner_ids=None if scope.principals is None else sorted(scope.principals),
    )


@router.get("/record-scope", response_model=list[RecordScopeRead])
def list_record_scopes(
    ctx: AuthContext = Depends(get_auth_context),
    service: RecordScopeService = Depends(get_record_scope_service),
) -> list[RecordScopeRead]:
    return [_describe(service, ctx, module) for module in RECORD_SCOPED_MODULES]


@router.get("/record-scope/{module}", response_model=RecordScopeRead)
def get_record_scope(
    module: str,
    ctx: AuthContext = Depends(get_auth_context),
    service: RecordScopeService = Depends(get_record_scope_service),
) -> RecordScopeRead:
    if module not in RECORD_SCOPED_MODULES:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="unknown module")
    return _describe(service, ctx, module)
