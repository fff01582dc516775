"""
Models / event.py
Rôle:
- Définir l'événement poussé aux abonnés (flux SSE ou WebSocket).

Notes:
- `event` restreint à un jeu de valeurs (Literal) pour éviter les fautes de frappe.
- `data` est un snapshot déjà calculé sous le verrou de la session : l'événement
  ne relit jamais l'état.
- Sérialisation via orjson (compact, UTF-8).
"""
from typing import Any, Dict, Literal

import orjson
from pydantic import BaseModel

# session_update -> hôte ; player_state / roster_update -> joueurs
EventType = Literal["session_update", "player_state", "roster_update"]


class StreamEvent(BaseModel):
    """Snapshot typé à diffuser à un ensemble d'abonnés."""
    event: EventType
    data: Dict[str, Any]

    def to_sse(self) -> str:
        """Trame Server-Sent Events: `event:` + `data:` + ligne vide."""
        return f"event: {self.event}\ndata: {orjson.dumps(self.data).decode()}\n\n"

    def to_message(self) -> Dict[str, Any]:
        """Enveloppe WebSocket {"type", "payload"}."""
        return {"type": self.event, "payload": self.data}
