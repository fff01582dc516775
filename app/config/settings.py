"""
Configuration de l'application (Settings)
=========================================

Rôle
----
- Centraliser les paramètres de l'app (nom, host/port, CORS, files de diffusion…).
- Les valeurs par défaut conviennent pour un environnement de dev local.
- Les variables peuvent être surchargées via un fichier `.env` ou l'environnement.

Intégrations
------------
- `pydantic-settings` charge automatiquement les variables d'env et `.env`.
- Les services/routers importent `from app.config.settings import settings`.

Notes
-----
- Aucun état n'est persisté : un redémarrage du process perd toutes les sessions.
- `SUBSCRIBER_QUEUE_SIZE` borne la file de chaque abonné ; un client qui ne
  consomme plus est déconnecté quand sa file déborde.

Exemple de `.env`
-----------------
APP_NAME="Storyteller Backend (Staging)"
PORT=8080
LOG_LEVEL="DEBUG"
ALLOWED_ORIGINS='["http://localhost:3000"]'
SSE_KEEPALIVE_SECONDS=20
"""
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Nom du service (apparaît dans /health)
    APP_NAME: str = "Storyteller Backend"
    # Bind réseau (FastAPI / Uvicorn)
    HOST: str = "0.0.0.0"
    PORT: int = 3000

    # Niveau du logging standard (DEBUG, INFO, WARNING…)
    LOG_LEVEL: str = "INFO"

    # Frontends autorisés par le middleware CORS
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Taille max de la file d'événements d'un abonné (SSE ou WebSocket)
    SUBSCRIBER_QUEUE_SIZE: int = 64
    # Intervalle des commentaires keepalive sur les flux SSE (secondes)
    SSE_KEEPALIVE_SECONDS: float = 15.0

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


# Instance unique importable partout : `settings`
settings = Settings()
