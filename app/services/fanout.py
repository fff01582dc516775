# app/services/fanout.py
"""
Service: fanout.py
- Un `Subscriber` = un canal de push ouvert (flux SSE ou WebSocket), adossé à
  une file asyncio bornée liée à la boucle qui l'a créé.
- `FanOut` : ensemble des abonnés hôte + mapping player_id -> set(Subscriber).
- Snapshots immuables des ensembles avant envoi (pas de "set changed size during iteration").
- Push non bloquant : un client lent (file pleine) est fermé, puis évincé au
  prochain envoi raté ou à sa déconnexion explicite.
- Admin: stats().
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from threading import RLock
from typing import AsyncIterator, Dict, List, Optional, Set

from app.config.settings import settings
from app.models.event import StreamEvent

logger = logging.getLogger(__name__)

# Sentinelle de réveil du consommateur à la fermeture
_CLOSED = object()


def _current_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class Subscriber:
    """Canal de push vers un client connecté (hôte ou joueur)."""

    def __init__(self, scope: str, player_id: Optional[str] = None, maxsize: Optional[int] = None) -> None:
        self.scope = scope
        self.player_id = player_id
        self.closed = False
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize or settings.SUBSCRIBER_QUEUE_SIZE)
        self._loop = _current_loop()

    def __repr__(self) -> str:
        return f"Subscriber(scope={self.scope!r}, player_id={self.player_id!r}, closed={self.closed})"

    def _offer(self, item: object) -> bool:
        if self.closed:
            return False
        try:
            self._queue.put_nowait(item)
            return True
        except asyncio.QueueFull:
            # consommateur trop lent -> on le lâche
            logger.debug("subscriber dropped (queue full): %r", self)
            self.closed = True
            return False

    def _foreign_loop(self) -> Optional[asyncio.AbstractEventLoop]:
        """Boucle propriétaire si elle tourne dans un autre thread que l'appelant."""
        loop = self._loop
        if loop is not None and loop.is_running() and loop is not _current_loop():
            return loop
        return None

    def _call(self, item: object) -> bool:
        loop = self._foreign_loop()
        if loop is not None:
            # envoi depuis un autre thread: on délègue à la boucle propriétaire (ordre FIFO conservé)
            try:
                loop.call_soon_threadsafe(self._offer, item)
            except RuntimeError:
                # boucle fermée entre-temps
                self.closed = True
                return False
            return True
        return self._offer(item)

    def push(self, event: StreamEvent) -> bool:
        """Dépose l'événement sans bloquer. False si le canal est mort."""
        if self.closed:
            return False
        return self._call(event)

    def close(self) -> None:
        """Marque le canal fermé et réveille le consommateur."""
        if self.closed:
            return
        loop = self._foreign_loop()
        if loop is not None:
            try:
                loop.call_soon_threadsafe(self._close_now)
                return
            except RuntimeError:
                pass
        self._close_now()

    def _close_now(self) -> None:
        self.closed = True
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            pass

    def pending(self) -> List[StreamEvent]:
        """Vide la file sans attendre (événements déjà déposés)."""
        items: List[StreamEvent] = []
        while True:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return items
            if item is not _CLOSED:
                items.append(item)

    async def stream(self, timeout: Optional[float] = None) -> AsyncIterator[Optional[StreamEvent]]:
        """
        Itère les événements reçus.
        - Renvoie None à chaque `timeout` sans événement (keepalive côté transport).
        - S'arrête une fois le canal fermé et la file vidée.
        """
        while True:
            if self.closed and self._queue.empty():
                return
            try:
                if timeout is None:
                    item = await self._queue.get()
                else:
                    item = await asyncio.wait_for(self._queue.get(), timeout)
            except asyncio.TimeoutError:
                yield None
                continue
            if item is _CLOSED:
                continue
            yield item


@dataclass
class FanOut:
    _lock: RLock = field(default_factory=RLock, init=False, repr=False)
    # canaux hôte de la session
    host_subscribers: Set[Subscriber] = field(default_factory=set)
    # player_id -> set(Subscriber)
    player_subscribers: Dict[str, Set[Subscriber]] = field(default_factory=dict)

    # ---------- abonnements ----------
    def subscribe_host(self, sub: Subscriber) -> None:
        with self._lock:
            self.host_subscribers.add(sub)

    def unsubscribe_host(self, sub: Subscriber) -> None:
        with self._lock:
            self.host_subscribers.discard(sub)

    def subscribe_player(self, player_id: str, sub: Subscriber) -> None:
        with self._lock:
            self.player_subscribers.setdefault(player_id, set()).add(sub)

    def unsubscribe_player(self, player_id: str, sub: Subscriber) -> None:
        with self._lock:
            bucket = self.player_subscribers.get(player_id)
            if bucket and sub in bucket:
                bucket.discard(sub)
                if not bucket:
                    self.player_subscribers.pop(player_id, None)

    # ---------- snapshots immuables ----------
    def _snapshot_host(self) -> List[Subscriber]:
        with self._lock:
            return list(self.host_subscribers)

    def _snapshot_player(self, player_id: str) -> List[Subscriber]:
        with self._lock:
            return list(self.player_subscribers.get(player_id, set()))

    def _snapshot_all_players(self) -> List[Subscriber]:
        with self._lock:
            result: List[Subscriber] = []
            for bucket in self.player_subscribers.values():
                result.extend(bucket)
            return result

    # ---------- envois ----------
    def _deliver(self, conns: List[Subscriber], event: StreamEvent) -> int:
        success = 0
        for sub in conns:
            if sub.push(event):
                success += 1
            elif sub.player_id is None:
                self.unsubscribe_host(sub)
            else:
                self.unsubscribe_player(sub.player_id, sub)
        return success

    def publish_to_host(self, event: StreamEvent) -> int:
        conns = self._snapshot_host()
        success = self._deliver(conns, event)
        logger.debug("publish %s -> host success=%d/%d", event.event, success, len(conns))
        return success

    def publish_to_player(self, player_id: str, event: StreamEvent) -> int:
        conns = self._snapshot_player(player_id)
        success = self._deliver(conns, event)
        logger.debug("publish %s -> player success=%d/%d", event.event, success, len(conns))
        return success

    def publish_to_all_players(self, event: StreamEvent) -> int:
        conns = self._snapshot_all_players()
        success = self._deliver(conns, event)
        logger.debug("publish %s -> players success=%d/%d", event.event, success, len(conns))
        return success

    # ---------- admin ----------
    def stats(self) -> dict:
        with self._lock:
            players = {pid: len(conns) for pid, conns in self.player_subscribers.items()}
            return {
                "host": len(self.host_subscribers),
                "players": players,
                "players_total": sum(players.values()),
            }

    def close_all(self) -> None:
        """Ferme TOUS les canaux (hôte + joueurs) et vide les registres."""
        with self._lock:
            conns = list(self.host_subscribers) + [s for b in self.player_subscribers.values() for s in b]
            self.host_subscribers.clear()
            self.player_subscribers.clear()
        for sub in conns:
            sub.close()
