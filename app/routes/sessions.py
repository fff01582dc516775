"""
Routes de gestion de session (REST).

Objectifs :
- Création de session (retourne le code partagé + le secret hôte).
- Inscription d'un joueur via le code.
- Actions hôte : tirage des rôles, attributions explicites, rôle unitaire,
  vivant/mort. Le secret hôte voyage dans le corps JSON, jamais dans l'URL.

Les routes restent minces : toute la logique (verrou, diffusion) est dans
`app.services.session_ops`. Les erreurs `SessionError` sont rendues en
`{"error": ...}` par les handlers de `app.main`.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field, StrictBool, model_validator

from app.deps.sessions import get_registry, session_optional, session_required
from app.services import session_ops
from app.services.errors import ValidationError
from app.services.session_store import Session, SessionRegistry

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


# ---------------------------------------------------------------------------
# Modèles Pydantic
# ---------------------------------------------------------------------------
class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class SessionCreateResponse(CamelModel):
    code: str
    host_secret: str = Field(..., alias="hostSecret")


class JoinPayload(CamelModel):
    name: Optional[str] = Field(None, description="Nom affiché du joueur")


class JoinResponse(CamelModel):
    code: str
    player_id: str = Field(..., alias="playerId")
    name: str


class RolesPayload(CamelModel):
    host_secret: Optional[str] = Field(None, alias="hostSecret")
    roles: Optional[List[Optional[str]]] = Field(
        None, description="Libellés à tirer au hasard sur les joueurs présents"
    )
    assignments: Optional[List[Any]] = Field(
        None, description="Attributions explicites [{playerId, role}] ; entrées invalides ignorées"
    )

    @model_validator(mode="after")
    def _one_form(self) -> "RolesPayload":
        if (self.roles is None) == (self.assignments is None):
            raise ValueError("provide either roles or assignments")
        return self


class RolePayload(CamelModel):
    host_secret: Optional[str] = Field(None, alias="hostSecret")
    role: Optional[str] = None


class AlivePayload(CamelModel):
    host_secret: Optional[str] = Field(None, alias="hostSecret")
    alive: Optional[StrictBool] = None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@router.post("", status_code=status.HTTP_201_CREATED, response_model=SessionCreateResponse)
async def create_session(registry: SessionRegistry = Depends(get_registry)):
    """Crée une session -> {code, hostSecret}."""
    return session_ops.create_session(registry)


@router.post("/{code}/join", status_code=status.HTTP_201_CREATED, response_model=JoinResponse)
async def join_session(payload: JoinPayload, session: Session = Depends(session_required)):
    """Inscription d'un joueur -> player_id opaque (nouveau joueur à chaque appel)."""
    return session_ops.join_session(session, payload.name)


@router.post("/{code}/roles")
async def assign_roles(payload: RolesPayload, session: Optional[Session] = Depends(session_optional)) -> Dict[str, Any]:
    """
    Deux formes :
    - {"roles": [...]}       -> tirage aléatoire, renvoie {"assigned": n}
    - {"assignments": [...]} -> attributions explicites, renvoie {"ok": true, "updated": n}
    """
    if payload.roles is not None:
        return session_ops.assign_roles(session, payload.host_secret, payload.roles)
    return session_ops.apply_role_assignments(session, payload.host_secret, payload.assignments)


@router.post("/{code}/players/{player_id}/role")
async def assign_role(player_id: str, payload: RolePayload, session: Optional[Session] = Depends(session_optional)):
    return session_ops.assign_role(session, payload.host_secret, player_id, payload.role)


@router.post("/{code}/players/{player_id}")
async def set_alive(player_id: str, payload: AlivePayload, session: Optional[Session] = Depends(session_optional)):
    """Marque un joueur vivant/mort (`alive` obligatoire)."""
    if payload.alive is None:
        raise ValidationError("alive flag is required")
    return session_ops.set_alive(session, payload.host_secret, player_id, payload.alive)
