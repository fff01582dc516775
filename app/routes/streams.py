"""
Flux Server-Sent Events.

- /api/sessions/{code}/stream?playerId=...      : canal joueur (player_state, roster_update)
- /api/sessions/{code}/host-stream?hostSecret=  : canal hôte (session_update)

Le secret hôte passe ici en query string (EventSource ne permet pas d'en-têtes
custom) ; c'est la seule route où il apparaît dans l'URL.

Chaque connexion = un `Subscriber`, ouvert au premier pas du générateur ; la
déconnexion (annulation du générateur ou `is_disconnected()` au keepalive) le
retire du FanOut dans le `finally`.
"""
from __future__ import annotations

import logging
from typing import AsyncIterator, Callable, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from app.config.settings import settings
from app.deps.sessions import session_optional, session_required
from app.services import session_ops
from app.services.errors import ValidationError
from app.services.fanout import Subscriber
from app.services.session_store import Session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions", tags=["streams"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


async def _event_source(
    request: Request,
    open_channel: Callable[[], Subscriber],
    close_channel: Callable[[Subscriber], None],
) -> AsyncIterator[str]:
    # abonnement au premier pas du générateur : rien n'est enregistré si le client part avant
    sub = open_channel()
    try:
        yield ": connected\n\n"
        async for event in sub.stream(timeout=settings.SSE_KEEPALIVE_SECONDS):
            if event is None:
                if await request.is_disconnected():
                    break
                yield ": keepalive\n\n"
                continue
            yield event.to_sse()
    finally:
        close_channel(sub)
        logger.debug("sse stream closed %r", sub)


def _sse(
    request: Request,
    open_channel: Callable[[], Subscriber],
    close_channel: Callable[[Subscriber], None],
) -> StreamingResponse:
    return StreamingResponse(
        _event_source(request, open_channel, close_channel),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.get("/{code}/stream")
async def player_stream(
    request: Request,
    player_id: Optional[str] = Query(default=None, alias="playerId"),
    session: Session = Depends(session_required),
):
    """Flux joueur ; un id inconnu reçoit {id, missing: true} puis le flux se termine."""
    pid = (player_id or "").strip()
    if not pid:
        raise ValidationError("playerId is required")
    return _sse(
        request,
        lambda: session_ops.subscribe_player(session, pid),
        lambda sub: session_ops.unsubscribe_player(session, sub),
    )


@router.get("/{code}/host-stream")
async def host_stream(
    request: Request,
    host_secret: Optional[str] = Query(default=None, alias="hostSecret"),
    session: Optional[Session] = Depends(session_optional),
):
    """Flux hôte ; 403 si le secret ne correspond pas (vérifié avant d'ouvrir le flux)."""
    session = session_ops.check_host_secret(session, host_secret)
    return _sse(
        request,
        lambda: session_ops.subscribe_host(session, host_secret),
        lambda sub: session_ops.unsubscribe_host(session, sub),
    )
