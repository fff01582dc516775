"""
Dépendances FastAPI : registre et résolution de session
=======================================================

Objectif
--------
- `get_registry` : récupère le `SessionRegistry` posé sur `app.state` par
  `create_app()` (injection explicite, remplaçable en test).
- `session_required` : résout `{code}` -> `Session`, 404 si inconnue
  (join, flux joueur).
- `session_optional` : idem sans lever ; utilisé par les routes hôte, qui
  répondent 403 aussi bien pour un code inconnu que pour un secret faux
  (on ne révèle pas l'existence d'une session à qui n'en a pas le secret).

Les erreurs sont des `SessionError` ; leur rendu HTTP est fait par les
handlers de `app.main`.
"""
from __future__ import annotations

from typing import Optional

from fastapi import Depends
from fastapi.requests import HTTPConnection

from app.services.session_store import Session, SessionRegistry


def get_registry(conn: HTTPConnection) -> SessionRegistry:
    """Registre des sessions du process (posé par create_app)."""
    return conn.app.state.registry


def session_required(code: str, registry: SessionRegistry = Depends(get_registry)) -> Session:
    return registry.lookup(code)


def session_optional(code: str, registry: SessionRegistry = Depends(get_registry)) -> Optional[Session]:
    return registry.get(code)
