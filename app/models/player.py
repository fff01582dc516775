"""
Models / player.py
Rôle:
- Définir la fiche d'un joueur dans une session et ses vues sérialisées.

Champs:
- id: identifiant opaque généré par le serveur (distinct du nom).
- name: nom d'affichage, saisi au join, immuable ensuite.
- role: libellé libre attribué par l'hôte (None tant que non attribué).
- alive: drapeau vivant/mort, écrit uniquement par l'hôte.

Vues:
- host_view(): vue complète (rôle inclus) destinée à l'hôte et au joueur lui-même.
- public_view(): vue du roster public, jamais de rôle.
- missing_view(): marqueur "joueur inconnu" (le client doit proposer de rejoindre).
"""
from typing import Any, Dict, Optional

from pydantic import BaseModel


class Player(BaseModel):
    """Fiche joueur détenue par le PlayerStore de sa session."""
    id: str
    name: str
    role: Optional[str] = None
    alive: bool = True

    def host_view(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "role": self.role, "alive": self.alive}

    def public_view(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "alive": self.alive}


def missing_view(player_id: str) -> Dict[str, Any]:
    return {"id": player_id, "missing": True}
