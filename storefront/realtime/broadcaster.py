"""
Diffusion temps réel des niveaux de stock aux clients WebSocket connectés.
"""
import logging
from typing import Iterable, Set

from fastapi import WebSocket

from storefront.catalog.models import StockUpdate

logger = logging.getLogger(__name__)

STOCK_UPDATE_EVENT = "stock-update"


# module storefront.realtime.broadcaster
class StockBroadcaster:
    """
    Registre des connexions /ws/stock.
    Une instance par application (app.state.stock_broadcaster).
    """

    def __init__(self):
        self._connections: Set[WebSocket] = set()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._connections.add(websocket)
        logger.info("Client stock connecté (total=%s)", self.connection_count)

    def disconnect(self, websocket: WebSocket) -> None:
        self._connections.discard(websocket)

    async def broadcast(self, updates: Iterable[StockUpdate]) -> int:
        """
        Envoie {"type": "stock-update", "updates": [{product_id, stock_qty}, ...]}
        à tous les clients. Un client injoignable est retiré sans interrompre
        la diffusion. Retourne le nombre de clients atteints.
        """
        payload = [u.model_dump() for u in updates]
        if not payload:
            return 0
        message = {"type": STOCK_UPDATE_EVENT, "updates": payload}
        sent = 0
        for websocket in list(self._connections):
            try:
                await websocket.send_json(message)
                sent += 1
            except Exception as e:
                logger.warning("Client stock injoignable, retiré: %s", e)
                self.disconnect(websocket)
        logger.info("Diffusion stock produits=%s clients=%s", len(payload), sent)
        return sent
