from fastapi import APIRouter, WebSocket, WebSocketDisconnect

router = APIRouter(tags=["Realtime"])


# module storefront.realtime.views
@router.websocket("/ws/stock")
async def stock_updates(websocket: WebSocket):
    """
    Flux des mises à jour de stock. Les messages entrants sont ignorés;
    la connexion reste enregistrée jusqu'à la déconnexion du client.
    """
    broadcaster = websocket.app.state.stock_broadcaster
    await broadcaster.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        broadcaster.disconnect(websocket)
