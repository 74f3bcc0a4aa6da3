"""
Notificador de eventos in-process (publish/subscribe).

Reemplaza el CustomEvent del navegador que avisaba a la UI de que un ciclo
de sincronizacion termino. El dispatch es sincrono y en orden de
suscripcion; un handler que falla se registra en el log y no impide que
el resto de handlers (ni el publicador) sigan su curso.

Uso:
    notifier = EventNotifier()
    unsubscribe = notifier.subscribe(SYNC_COMPLETED_EVENT, lambda payload: refresh())
    notifier.publish(SYNC_COMPLETED_EVENT, {"last_sync": "..."})
    unsubscribe()
"""
from __future__ import annotations

import threading
from typing import Any, Callable, Dict, List, Optional

from loguru import logger


SYNC_COMPLETED_EVENT = "sync.completed"

EventHandler = Callable[[Optional[Dict[str, Any]]], None]


class EventNotifier:
    """Bus de eventos por nombre."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[EventHandler]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_name: str, handler: EventHandler) -> Callable[[], None]:
        """
        Suscribe un handler a un evento.

        Args:
            event_name: Nombre del evento (p.ej. SYNC_COMPLETED_EVENT)
            handler: Funcion llamada con el payload del evento

        Returns:
            Callable[[], None]: Funcion que cancela la suscripcion (idempotente)
        """
        with self._lock:
            self._subscribers.setdefault(event_name, []).append(handler)

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._subscribers.get(event_name)
                if handlers and handler in handlers:
                    handlers.remove(handler)
                    if not handlers:
                        del self._subscribers[event_name]

        return unsubscribe

    def publish(self, event_name: str, payload: Optional[Dict[str, Any]] = None) -> int:
        """
        Publica un evento a todos los suscriptores actuales.

        Returns:
            int: Numero de handlers que terminaron sin error
        """
        # Copia para no sostener el lock durante los callbacks
        with self._lock:
            handlers = list(self._subscribers.get(event_name, ()))

        delivered = 0
        for handler in handlers:
            try:
                handler(payload)
                delivered += 1
            except Exception:
                logger.exception(f"[events] Handler de '{event_name}' fallo")
        return delivered

    def subscriber_count(self, event_name: str) -> int:
        with self._lock:
            return len(self._subscribers.get(event_name, ()))
