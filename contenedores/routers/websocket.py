import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from typing import List
import anyio

logger = logging.getLogger(__name__)

router = APIRouter()


class ConnectionManager:
    """Guarda las conexiones WebSocket activas para avisarles de cada cambio."""

    def __init__(self):
        self.active_connections: List[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)

    async def broadcast(self, message: str):
        """Envía un mensaje de texto a todos los clientes conectados."""
        for connection in list(self.active_connections):
            await connection.send_text(message)


# Instanciamos para poder usarla en cualquier parte del código
manager = ConnectionManager()


def notify_change(message: str) -> None:
    """Avisa a los clientes desde una ruta síncrona.

    AnyIO permite ejecutar el broadcast en el event loop de FastAPI desde el
    hilo del threadpool. Un fallo al notificar no invalida la operación.
    """

    async def emit(message: str):
        await manager.broadcast(message)

    try:
        anyio.from_thread.run(emit, message)
    except Exception as e:
        logger.warning("Error al emitir WebSocket: %s", e)


@router.websocket("/ws/solicitudes")
async def websocket_endpoint(websocket: WebSocket):
    await manager.connect(websocket)

    try:
        # Mantenemos la conexión viva hasta que el cliente se desconecte
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(websocket)
