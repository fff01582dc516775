"""
Service: player_store.py
Rôle :
- Registre des joueurs d'UNE session (player_id -> Player), ordre d'inscription conservé.
- Applique les règles d'identité et de mutation (trim des noms/rôles, ids jamais réutilisés).

Notes :
- Le store n'a pas de verrou propre : il est toujours manipulé sous le verrou
  de sa `Session` (cf. session_store.py), avec la diffusion qui suit.
- Pas de limite de capacité au join.
- `bulk_assign_roles` : mélange Fisher–Yates (random.shuffle) puis appariement
  position par position avec la liste de rôles.
"""
from __future__ import annotations

import random
from typing import Any, Dict, Iterable, List, Optional

from app.models.player import Player
from app.services.errors import NotFoundError, ValidationError
from app.services.identifiers import new_opaque_id


def _clean_role(role: Any) -> Optional[str]:
    """Rôle trimé ; vide ou non-texte -> None (non attribué)."""
    if not isinstance(role, str):
        return None
    return role.strip() or None


class PlayerStore:
    def __init__(self, rng: Optional[random.Random] = None) -> None:
        self._players: Dict[str, Player] = {}
        self._rng = rng or random.SystemRandom()

    def __len__(self) -> int:
        return len(self._players)

    def __contains__(self, player_id: object) -> bool:
        return player_id in self._players

    def get(self, player_id: str) -> Optional[Player]:
        return self._players.get(player_id)

    def require(self, player_id: str) -> Player:
        player = self._players.get(player_id)
        if player is None:
            raise NotFoundError("Player not found")
        return player

    def players(self) -> List[Player]:
        return list(self._players.values())

    # ---------- mutations ----------
    def join(self, name: Any) -> Player:
        """Inscrit un nouveau joueur (role=None, alive=True). Re-join = nouveau joueur."""
        clean = name.strip() if isinstance(name, str) else ""
        if not clean:
            raise ValidationError("Name is required")
        player_id = new_opaque_id()
        while player_id in self._players:
            player_id = new_opaque_id()
        player = Player(id=player_id, name=clean)
        self._players[player_id] = player
        return player

    def set_role(self, player_id: str, role: Optional[str]) -> Player:
        player = self.require(player_id)
        player.role = _clean_role(role)
        return player

    def set_alive(self, player_id: str, alive: bool) -> Player:
        if not isinstance(alive, bool):
            raise ValidationError("alive flag is required")
        player = self.require(player_id)
        player.alive = alive
        return player

    def bulk_assign_roles(self, roles: Iterable[Any]) -> int:
        """
        Distribue les rôles au hasard :
        1) permutation uniforme des joueurs présents,
        2) zip avec `roles` ; les joueurs au-delà de la liste repassent à None,
           les rôles en trop sont ignorés.
        Retourne le nombre de joueurs ayant reçu un rôle non nul.
        """
        labels = [_clean_role(role) for role in roles]
        order = list(self._players.values())
        self._rng.shuffle(order)
        assigned = 0
        for index, player in enumerate(order):
            player.role = labels[index] if index < len(labels) else None
            if player.role is not None:
                assigned += 1
        return assigned

    def apply_assignments(self, assignments: Iterable[Dict[str, Any]]) -> List[Player]:
        """
        Attributions explicites [{"playerId", "role"}].
        Les entrées mal formées ou visant un joueur inconnu sont ignorées.
        """
        updated: List[Player] = []
        for item in assignments:
            if not isinstance(item, dict) or not isinstance(item.get("playerId"), str):
                continue
            player = self._players.get(item["playerId"])
            if player is None:
                continue
            player.role = _clean_role(item.get("role"))
            updated.append(player)
        return updated

    # ---------- vues ----------
    def host_roster(self) -> List[Dict[str, Any]]:
        return [p.host_view() for p in self._players.values()]

    def public_roster(self) -> List[Dict[str, Any]]:
        return [p.public_view() for p in self._players.values()]
