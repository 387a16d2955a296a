import asyncio
import os
import sys
from contextlib import asynccontextmanager
from typing import Optional, Union

from fastapi import APIRouter, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.websockets import WebSocketState

from .. import __version__
from .hub import RelayHub
from .registry import Connection, ConnectionRegistry
from .store import SessionStore

# ------------------------------------------------------------------------------
# Configuration
# ------------------------------------------------------------------------------
HOST = os.getenv("RELAY_HOST", "0.0.0.0")
PORT = int(os.getenv("RELAY_PORT", os.getenv("PORT", "3000")))
LOG_LEVEL = os.getenv("RELAY_LOG_LEVEL", "INFO").upper()
USER_PREFIX = os.getenv("RELAY_USER_PREFIX", "user_")
# Frames queued for one client before it is treated as too slow and closed.
OUTBOX_SIZE = int(os.getenv("RELAY_OUTBOX_SIZE", "256"))
# "Try again later"
SLOW_CONSUMER_CLOSE_CODE = 1013


# ------------------------------------------------------------------------------
# Transport
# ------------------------------------------------------------------------------
class WebSocketConnection(Connection):
    """Relay connection backed by a WebSocket.

    ``send`` only enqueues; :meth:`pump` writes the queue to the socket in
    order, so the relay core never waits on the network.  A client whose
    queue fills up is closed rather than buffered without limit.
    """

    def __init__(self, ws: WebSocket, maxsize: int = OUTBOX_SIZE):
        super().__init__()
        self.ws = ws
        self._loop = asyncio.get_running_loop()
        self._outbox: "asyncio.Queue[Union[str, bytes]]" = asyncio.Queue(maxsize=maxsize)

    def send(self, data: Union[str, bytes]) -> None:
        if self.alive:
            self._loop.call_soon_threadsafe(self._enqueue, data)

    def _enqueue(self, data: Union[str, bytes]) -> None:
        if not self.alive:
            return
        try:
            self._outbox.put_nowait(data)
        except asyncio.QueueFull:
            logger.warning(f"Outbox full for {self!r}; closing slow connection")
            self.alive = False
            self._loop.create_task(self._close(SLOW_CONSUMER_CLOSE_CODE))

    async def _close(self, code: int) -> None:
        try:
            await self.ws.close(code=code)
        except RuntimeError:
            pass

    async def pump(self):
        while True:
            data = await self._outbox.get()
            if self.ws.application_state != WebSocketState.CONNECTED:
                return
            try:
                if isinstance(data, bytes):
                    await self.ws.send_bytes(data)
                else:
                    await self.ws.send_text(data)
            except (WebSocketDisconnect, RuntimeError):
                self.alive = False
                return


# ------------------------------------------------------------------------------
# WebSocket endpoint: / and /ws
# ------------------------------------------------------------------------------
router = APIRouter()


@router.websocket("/")
@router.websocket("/ws")
async def relay_socket(ws: WebSocket):
    hub: RelayHub = ws.app.state.hub
    await ws.accept()
    conn = WebSocketConnection(ws)
    hub.connect(conn)
    pump = asyncio.create_task(conn.pump())

    try:
        while True:
            message = await ws.receive()
            if message["type"] == "websocket.disconnect":
                break
            data = message.get("text")
            if data is None:
                data = message.get("bytes")
            if data is None:
                continue
            hub.handle(conn, data)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception(f"Connection error on {conn!r}")
    finally:
        # Runs for graceful and abrupt closes alike.
        hub.disconnect(conn)
        pump.cancel()


# ------------------------------------------------------------------------------
# Control endpoints
# ------------------------------------------------------------------------------
@router.get("/relay/status")
async def relay_status(request: Request):
    hub: RelayHub = request.app.state.hub
    store = hub.store
    with store.lock:
        return JSONResponse(
            {
                "connections": len(store.registry),
                "users": store.directory.snapshot(),
                "chats": [s.as_dict() for s in hub.pairing.active_sessions()],
            }
        )


@router.get("/healthz")
async def healthz():
    return JSONResponse({"ok": True})


# ------------------------------------------------------------------------------
# App scaffolding
# ------------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Relay ready on ws://{HOST}:{PORT}/ (user prefix {USER_PREFIX!r})")
    yield
    logger.info("Relay shutting down")


def create_app(hub: Optional[RelayHub] = None) -> FastAPI:
    """Build the relay app around *hub*, or around a fresh session store."""

    if hub is None:
        hub = RelayHub(SessionStore(registry=ConnectionRegistry(prefix=USER_PREFIX)))
    app = FastAPI(title="kyberchat relay", version=__version__, lifespan=lifespan)
    app.state.hub = hub
    app.include_router(router)
    return app


app = create_app()


def configure_logging(level: str = LOG_LEVEL) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level)


def main():
    import uvicorn

    configure_logging()
    uvicorn.run(app, host=HOST, port=PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
