"""
Application FastAPI - Point d'entrée
====================================

Rôle
----
- `create_app()` est la racine de composition : crée le `SessionRegistry`
  (un par app, posé sur `app.state.registry`), configure le logging et le CORS,
  monte les routeurs (REST + SSE + WebSocket) et les handlers d'erreurs.
- `app` est l'instance utilisée par uvicorn (`uvicorn app.main:app`).

Notes
-----
- Les erreurs métier (`SessionError`) sont rendues en `{"error": message}`
  avec leur status (400 / 403 / 404).
- Une entrée mal formée (JSON invalide, mauvais type, champ manquant) est
  convertie en `ValidationError` -> 400, avant d'atteindre le coeur.
- ⚠️ Le middleware CORS doit être ajouté AVANT les include_router.
- À l'arrêt, tous les canaux ouverts sont fermés pour libérer les flux SSE.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config.settings import settings
from app.routes.health import router as health_router
from app.routes.sessions import router as sessions_router
from app.routes.streams import router as streams_router
from app.routes.websocket import router as ws_router
from app.services.errors import SessionError, ValidationError
from app.services.session_store import SessionRegistry

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _validation_message(exc: RequestValidationError) -> str:
    """Premier message lisible d'une erreur de validation FastAPI."""
    for err in exc.errors():
        if err.get("type") == "json_invalid":
            return "Invalid JSON body"
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        msg = err.get("msg", "invalid value")
        return f"{loc}: {msg}" if loc else msg
    return "Invalid request"


async def session_error_handler(request: Request, exc: SessionError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    err = ValidationError(_validation_message(exc))
    return JSONResponse(status_code=err.status_code, content={"error": err.message})


def create_app(registry: Optional[SessionRegistry] = None) -> FastAPI:
    """Construit l'application ; `registry` injectable pour les tests."""
    _configure_logging()
    registry = registry or SessionRegistry()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("== %s listening on %s:%s ==", settings.APP_NAME, settings.HOST, settings.PORT)
        for r in app.routes:
            logger.debug("route %s %s", getattr(r, "path", "?"), getattr(r, "methods", None) or "WS")
        yield
        registry.close_all()

    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.state.registry = registry

    # ===========================
    # CORS
    # ===========================
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(SessionError, session_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    # ===========================
    # Montage des routers
    # ===========================
    app.include_router(sessions_router)
    app.include_router(streams_router)
    app.include_router(ws_router)               # WebSocket endpoints (/ws/sessions/...)
    app.include_router(health_router)

    @app.get("/")
    async def root():
        """Ping basique : permet de vérifier que l'app tourne."""
        return {"ok": True, "service": "storyteller-backend"}

    return app


app = create_app()
