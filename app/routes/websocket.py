# app/routes/websocket.py
"""
WebSocket endpoints.

- /ws/sessions/{code}/host?hostSecret=...  : canal hôte (session_update)
- /ws/sessions/{code}/player/{player_id}   : canal joueur (player_state, roster_update)

Mêmes événements que les flux SSE, encapsulés en {"type": <event>, "payload": <data>}.
Le client peut envoyer {"type": "ping"} -> {"type": "pong"} (heartbeat) ;
les autres messages sont ignorés.

Refus avant accept : 4403 (secret hôte invalide), 4404 (session inconnue).
"""
from __future__ import annotations

import logging
from typing import Optional

import anyio
import orjson
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from app.deps.sessions import get_registry
from app.services import session_ops
from app.services.errors import SessionError
from app.services.fanout import Subscriber

logger = logging.getLogger(__name__)

router = APIRouter()

WS_CLOSE_CODES = {403: 4403, 404: 4404}


async def _send_events(ws: WebSocket, sub: Subscriber) -> bool:
    """
    Relaye la file de l'abonné vers la socket.
    True si le canal a été fermé côté serveur, False si la socket a lâché.
    """
    async for event in sub.stream():
        try:
            await ws.send_text(orjson.dumps(event.to_message()).decode())
        except (WebSocketDisconnect, RuntimeError):
            return False
    return True


async def _receive_loop(ws: WebSocket) -> None:
    """Boucle d'écoute : heartbeat ping/pong, le reste (binaire, non JSON) est ignoré."""
    while True:
        message = await ws.receive()
        if message["type"] == "websocket.disconnect":
            return
        raw = message.get("text")
        if raw is None:
            continue
        try:
            msg = orjson.loads(raw)
        except orjson.JSONDecodeError:
            # Message non JSON -> ignore
            continue
        if isinstance(msg, dict) and msg.get("type") == "ping":
            await ws.send_text(orjson.dumps({"type": "pong"}).decode())


async def _serve(ws: WebSocket, sub: Subscriber) -> None:
    """
    Fait tourner émission et réception dans un même task group ; la première
    qui se termine annule l'autre.
    - Déconnexion du client -> fin de la réception.
    - Canal fermé côté serveur (joueur inconnu, client trop lent) -> fin de l'émission, close 1000.
    """
    server_closed = False

    async with anyio.create_task_group() as group:

        async def send() -> None:
            nonlocal server_closed
            server_closed = await _send_events(ws, sub)
            group.cancel_scope.cancel()

        async def receive() -> None:
            await _receive_loop(ws)
            group.cancel_scope.cancel()

        group.start_soon(send)
        group.start_soon(receive)

    if server_closed:
        try:
            await ws.close()
        except (WebSocketDisconnect, RuntimeError):
            pass


async def _reject(ws: WebSocket, err: SessionError) -> None:
    await ws.close(code=WS_CLOSE_CODES.get(err.status_code, 1008), reason=err.message)


@router.websocket("/ws/sessions/{code}/host")
async def host_socket(ws: WebSocket, code: str, host_secret: Optional[str] = Query(default=None, alias="hostSecret")):
    session = get_registry(ws).get(code)
    try:
        sub = session_ops.subscribe_host(session, host_secret)
    except SessionError as err:
        await _reject(ws, err)
        return
    await ws.accept()
    try:
        await _serve(ws, sub)
    finally:
        session_ops.unsubscribe_host(session, sub)
        logger.debug("host socket closed code=%s", session.code)


@router.websocket("/ws/sessions/{code}/player/{player_id}")
async def player_socket(ws: WebSocket, code: str, player_id: str):
    registry = get_registry(ws)
    try:
        session = registry.lookup(code)
    except SessionError as err:
        await _reject(ws, err)
        return
    sub = session_ops.subscribe_player(session, player_id)
    await ws.accept()
    try:
        await _serve(ws, sub)
    finally:
        session_ops.unsubscribe_player(session, sub)
        logger.debug("player socket closed code=%s", session.code)
