"""
Service: session_ops.py
Rôle :
- Opérations exposées au transport : créer une session, rejoindre, attribuer
  les rôles (tirage, liste explicite, unitaire), marquer vivant/mort,
  s'abonner aux flux hôte / joueur.

Forme commune d'une mutation :
    valider -> autoriser (secret hôte) -> appliquer au PlayerStore
    -> calculer les snapshots -> diffuser via FanOut -> acquitter.
Tout se passe sous `session.lock` : aucun abonné ne voit un snapshot calculé
sur un état intermédiaire, et un abonnement concurrent reçoit soit la
diffusion, soit un snapshot initial qui inclut déjà la mutation.

Événements :
- session_update (hôte)    : {code, players:[{id,name,role,alive}]}
- player_state   (joueur)  : {id,name,role,alive} ou {id, missing: true}
- roster_update  (joueurs) : {code, players:[{id,name,alive}]}  (jamais de rôle)
"""
from __future__ import annotations

import hmac
import logging
from typing import Any, Dict, Optional

from app.models.event import StreamEvent
from app.models.player import missing_view
from app.services.errors import ForbiddenError, ValidationError
from app.services.fanout import Subscriber
from app.services.session_store import Session, SessionRegistry

logger = logging.getLogger(__name__)

INVALID_HOST_SECRET = "Invalid host secret"


# ---------------------------------------------------------------------------
# Snapshots (toujours appelés sous session.lock)
# ---------------------------------------------------------------------------
def host_snapshot(session: Session) -> StreamEvent:
    return StreamEvent(
        event="session_update",
        data={"code": session.code, "players": session.players.host_roster()},
    )


def player_snapshot(session: Session, player_id: str) -> StreamEvent:
    player = session.players.get(player_id)
    data = player.host_view() if player is not None else missing_view(player_id)
    return StreamEvent(event="player_state", data=data)


def roster_snapshot(session: Session) -> StreamEvent:
    return StreamEvent(
        event="roster_update",
        data={"code": session.code, "players": session.players.public_roster()},
    )


def check_host_secret(session: Optional[Session], host_secret: Any) -> Session:
    """
    Vérifie le secret hôte (comparaison à temps constant).
    Session inconnue et secret faux donnent la même erreur.
    """
    if session is None or not isinstance(host_secret, str) or not host_secret:
        raise ForbiddenError(INVALID_HOST_SECRET)
    if not hmac.compare_digest(host_secret.encode(), session.host_secret.encode()):
        logger.warning("host secret rejected code=%s", session.code)
        raise ForbiddenError(INVALID_HOST_SECRET)
    return session


def _broadcast_player(session: Session, player_id: str) -> None:
    session.fanout.publish_to_player(player_id, player_snapshot(session, player_id))


def _broadcast_host(session: Session) -> None:
    session.fanout.publish_to_host(host_snapshot(session))


def _broadcast_roster(session: Session) -> None:
    session.fanout.publish_to_all_players(roster_snapshot(session))


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------
def create_session(registry: SessionRegistry) -> Dict[str, str]:
    session = registry.create()
    return {"code": session.code, "hostSecret": session.host_secret}


def join_session(session: Session, name: Any) -> Dict[str, str]:
    """Inscrit un joueur ; pas d'autorisation requise."""
    with session.lock:
        player = session.players.join(name)
        _broadcast_host(session)
        _broadcast_player(session, player.id)
        _broadcast_roster(session)
    logger.info("player joined code=%s players=%d", session.code, len(session.players))
    return {"code": session.code, "playerId": player.id, "name": player.name}


def assign_roles(session: Optional[Session], host_secret: Any, roles: Any) -> Dict[str, int]:
    """Tirage aléatoire des rôles sur les joueurs présents -> {"assigned": n}."""
    if not isinstance(roles, list):
        raise ValidationError("roles must be an array")
    session = check_host_secret(session, host_secret)
    with session.lock:
        assigned = session.players.bulk_assign_roles(roles)
        for player in session.players.players():
            _broadcast_player(session, player.id)
        _broadcast_host(session)
    logger.info("roles drawn code=%s assigned=%d players=%d", session.code, assigned, len(session.players))
    return {"assigned": assigned}


def apply_role_assignments(session: Optional[Session], host_secret: Any, assignments: Any) -> Dict[str, Any]:
    """Attributions explicites [{"playerId", "role"}] ; entrées inconnues ignorées."""
    if not isinstance(assignments, list):
        raise ValidationError("assignments must be an array")
    session = check_host_secret(session, host_secret)
    with session.lock:
        updated = session.players.apply_assignments(assignments)
        for player in updated:
            _broadcast_player(session, player.id)
        if updated:
            _broadcast_host(session)
    logger.info("roles assigned code=%s updated=%d", session.code, len(updated))
    return {"ok": True, "updated": len(updated)}


def assign_role(session: Optional[Session], host_secret: Any, player_id: str, role: Optional[str]) -> Dict[str, bool]:
    if role is not None and not isinstance(role, str):
        raise ValidationError("role must be a string or null")
    session = check_host_secret(session, host_secret)
    with session.lock:
        player = session.players.set_role(player_id, role)
        _broadcast_player(session, player.id)
        _broadcast_host(session)
    return {"ok": True}


def set_alive(session: Optional[Session], host_secret: Any, player_id: str, alive: Any) -> Dict[str, bool]:
    if not isinstance(alive, bool):
        raise ValidationError("alive flag is required")
    session = check_host_secret(session, host_secret)
    with session.lock:
        player = session.players.set_alive(player_id, alive)
        _broadcast_player(session, player.id)
        _broadcast_host(session)
        _broadcast_roster(session)
    logger.info("player %s code=%s", "revived" if alive else "killed", session.code)
    return {"ok": True}


# ---------------------------------------------------------------------------
# Abonnements
# ---------------------------------------------------------------------------
def subscribe_host(session: Optional[Session], host_secret: Any) -> Subscriber:
    """Ouvre un canal hôte et y pousse immédiatement l'état courant."""
    session = check_host_secret(session, host_secret)
    sub = Subscriber(scope=session.code)
    with session.lock:
        session.fanout.subscribe_host(sub)
        sub.push(host_snapshot(session))
    logger.debug("host subscribed code=%s", session.code)
    return sub


def subscribe_player(session: Session, player_id: str) -> Subscriber:
    """
    Ouvre un canal joueur et y pousse immédiatement son état.
    Joueur inconnu : un seul événement {id, missing: true} puis canal fermé
    (les ids ne sont jamais réutilisés, le client doit rejoindre à nouveau).
    """
    sub = Subscriber(scope=session.code, player_id=player_id)
    with session.lock:
        known = player_id in session.players
        sub.push(player_snapshot(session, player_id))
        if known:
            session.fanout.subscribe_player(player_id, sub)
            sub.push(roster_snapshot(session))
    if not known:
        sub.close()
    logger.debug("player subscribed code=%s known=%s", session.code, known)
    return sub


def unsubscribe_host(session: Session, sub: Subscriber) -> None:
    session.fanout.unsubscribe_host(sub)
    sub.close()


def unsubscribe_player(session: Session, sub: Subscriber) -> None:
    if sub.player_id is not None:
        session.fanout.unsubscribe_player(sub.player_id, sub)
    sub.close()

