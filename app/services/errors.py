"""
Service: errors.py
- Taxonomie des erreurs métier du coeur (sessions, joueurs, diffusion).
- Chaque erreur porte son `status_code` HTTP ; le mapping vers une réponse
  JSON `{"error": ...}` est fait par les handlers enregistrés dans `app.main`.
- Aucune de ces erreurs n'est fatale : elles concernent uniquement l'appelant.
"""
from __future__ import annotations


class SessionError(Exception):
    """Base des erreurs remontées à l'appelant immédiat."""

    status_code: int = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(SessionError, ValueError):
    """Champ manquant ou mal formé (nom vide, alive non booléen…)."""

    status_code = 400


class NotFoundError(SessionError, LookupError):
    """Code de session ou player_id inconnu."""

    status_code = 404


class ForbiddenError(SessionError, PermissionError):
    """Secret hôte absent ou invalide."""

    status_code = 403
