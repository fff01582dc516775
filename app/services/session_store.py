"""
Session store registry
======================

Table des sessions actives (code -> `Session`), en mémoire uniquement.

- `SessionRegistry` est une instance explicite, créée par `create_app()` et
  rangée dans `app.state.registry` (pas de singleton module).
- Chaque `Session` possède son `PlayerStore`, son `FanOut` et un verrou
  (`RLock`) qui sérialise mutation + diffusion sur CETTE session.
- Le verrou du registre ne couvre que la création et la recherche ; il n'est
  jamais pris en même temps qu'un verrou de session.
- Pas d'expiration : une session vit aussi longtemps que le process.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from threading import RLock
from typing import Callable, Dict, Optional

from .errors import NotFoundError
from .fanout import FanOut
from .identifiers import new_opaque_id, new_session_code, normalize_code
from .player_store import PlayerStore

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Session:
    code: str
    host_secret: str = field(repr=False)
    created_at: float = field(default_factory=time.time)
    players: PlayerStore = field(default_factory=PlayerStore, repr=False)
    fanout: FanOut = field(default_factory=FanOut, repr=False)
    lock: RLock = field(default_factory=RLock, init=False, repr=False)


class SessionRegistry:
    def __init__(self, store_factory: Optional[Callable[[], PlayerStore]] = None) -> None:
        self._lock = RLock()
        self._sessions: Dict[str, Session] = {}
        self._store_factory = store_factory or PlayerStore

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, code: object) -> bool:
        if not isinstance(code, str):
            return False
        return self.get(code) is not None

    def create(self) -> Session:
        """Crée une session vide avec un code unique et un secret hôte."""
        with self._lock:
            code = new_session_code(lambda c: c in self._sessions)
            session = Session(code=code, host_secret=new_opaque_id(), players=self._store_factory())
            self._sessions[code] = session
        logger.info("session created code=%s", code)
        return session

    def get(self, code: Optional[str]) -> Optional[Session]:
        """Recherche insensible à la casse ; None si inconnue."""
        normalized = normalize_code(code)
        if not normalized:
            return None
        with self._lock:
            return self._sessions.get(normalized)

    def lookup(self, code: Optional[str]) -> Session:
        session = self.get(code)
        if session is None:
            raise NotFoundError("Session not found")
        return session

    def stats(self) -> dict:
        """Compteurs agrégés pour /health (sessions, joueurs, abonnés)."""
        with self._lock:
            sessions = list(self._sessions.values())
        players = 0
        host_subs = 0
        player_subs = 0
        for session in sessions:
            with session.lock:
                players += len(session.players)
                fan = session.fanout.stats()
            host_subs += fan["host"]
            player_subs += fan["players_total"]
        return {
            "sessions": len(sessions),
            "players": players,
            "subscribers": {"host": host_subs, "players": player_subs},
        }

    def close_all(self) -> None:
        """Ferme tous les canaux ouverts (arrêt du serveur)."""
        with self._lock:
            sessions = list(self._sessions.values())
        for session in sessions:
            session.fanout.close_all()
