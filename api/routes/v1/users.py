"""
api/routes/v1/users.py -- Identity management endpoints.

Routes:
  GET    /api/v1/users            -- list identities (OWNER only)
  GET    /api/v1/users/{id}       -- one identity (self or OWNER)
  PATCH  /api/v1/users/{id}       -- partial update (self or OWNER; role changes OWNER only)
  DELETE /api/v1/users/{id}       -- delete (OWNER only)

Access rules beyond the guards:
  Self-or-owner: a GUEST may read and edit only the identity named by its own
  token's subject. Anything else is Forbidden, checked before the lookup so a
  GUEST cannot probe which ids exist.

  Role changes: only an OWNER may set role, so PATCH cannot be used to climb
  from GUEST to OWNER.

Tokens issued before an update keep their old claims until they expire --
there is no revocation.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from api.models import IdentityPatch, IdentityResponse
from auth.dependencies import require_identity, require_owner
from auth.errors import Forbidden
from auth.models import Claims, Role
from auth.service import AuthService

router = APIRouter()


def _ensure_self_or_owner(claims: Claims, identity_id: str) -> None:
    if claims.role is not Role.OWNER and claims.subject_id != identity_id:
        raise Forbidden()


@router.get("/users", response_model=list[IdentityResponse])
def list_users(request: Request, claims: Claims = Depends(require_owner)) -> list[IdentityResponse]:
    service: AuthService = request.app.state.auth_service
    return [IdentityResponse.from_identity(i) for i in service.list_identities()]


@router.get("/users/{identity_id}", response_model=IdentityResponse)
def get_user(
    request: Request,
    identity_id: str,
    claims: Claims = Depends(require_identity),
) -> IdentityResponse:
    _ensure_self_or_owner(claims, identity_id)
    service: AuthService = request.app.state.auth_service
    return IdentityResponse.from_identity(service.get_identity(identity_id))


@router.patch("/users/{identity_id}", response_model=IdentityResponse)
def update_user(
    request: Request,
    identity_id: str,
    body: IdentityPatch,
    claims: Claims = Depends(require_identity),
) -> IdentityResponse:
    """Update email, display name, password, or (OWNER only) role.

    A new password is checked against the same policy as registration and
    re-hashed. A taken email yields 409 duplicate_email.
    """
    _ensure_self_or_owner(claims, identity_id)
    if body.role is not None and claims.role is not Role.OWNER:
        raise Forbidden()
    service: AuthService = request.app.state.auth_service
    updated = service.update_identity(
        identity_id,
        email=body.email,
        display_name=body.display_name,
        password=body.password,
        role=body.role,
    )
    return IdentityResponse.from_identity(updated)


@router.delete("/users/{identity_id}", status_code=204)
def delete_user(
    request: Request,
    identity_id: str,
    claims: Claims = Depends(require_owner),
) -> Response:
    service: AuthService = request.app.state.auth_service
    service.delete_identity(identity_id)
    return Response(status_code=204)
