"""
Service: identifiers.py
- Codes de session courts (5 caractères, alphabet sans 0/O/1/I).
- Identifiants opaques (secret hôte, player_id) tirés du CSPRNG `secrets`.
"""
from __future__ import annotations

import secrets
from typing import Callable

SESSION_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
SESSION_CODE_LENGTH = 5
# 24 octets -> 192 bits, encodage URL-safe (le secret hôte passe en query string)
OPAQUE_ID_BYTES = 24


def new_session_code(taken: Callable[[str], bool] = lambda code: False) -> str:
    """
    Tire un code uniformément dans l'alphabet.
    Retire tant que `taken(code)` indique une collision avec une session vivante.
    """
    while True:
        code = "".join(secrets.choice(SESSION_CODE_ALPHABET) for _ in range(SESSION_CODE_LENGTH))
        if not taken(code):
            return code


def new_opaque_id() -> str:
    """Jeton imprévisible pour les secrets hôte et les player_id."""
    return secrets.token_urlsafe(OPAQUE_ID_BYTES)


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()
