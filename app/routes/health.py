"""
Module routes/health.py
Rôle:
- Endpoint de santé (service OK + compteurs sessions / joueurs / abonnés).

Intégrations:
- settings: nom d'app.
- SessionRegistry.stats(): agrégats calculés sous les verrous de session.
"""
from fastapi import APIRouter, Depends

from app.config.settings import settings
from app.deps.sessions import get_registry
from app.services.session_store import SessionRegistry

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health(registry: SessionRegistry = Depends(get_registry)):
    """Renvoie un OK minimal avec le nom de service et l'occupation mémoire du registre."""
    return {"ok": True, "service": settings.APP_NAME, **registry.stats()}
