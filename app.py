from contextlib import asynccontextmanager
from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from routers.rooms import rooms_router
from backend import SessionRegistry, session_registry, utc_timestamp
from connections import ConnectionManager
from constants import CORS_ORIGINS, LOG_FILE, LOG_LEVEL
from protocol import RoomProtocolHandler
from schemas.rooms import StatusResponse
import uuid
import json
import asyncio
from logging_config import get_logger, log_loop_exception, setup_logging

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Faults in tasks nobody awaits are logged, never fatal
    asyncio.get_running_loop().set_exception_handler(log_loop_exception)
    logger.info("Location relay started")
    yield
    logger.info(
        f"Location relay stopping with {app.state.registry.room_count()} rooms "
        f"and {app.state.registry.user_count()} users"
    )


def create_app(registry: SessionRegistry = session_registry) -> FastAPI:
    app = FastAPI(title="Location Relay", lifespan=lifespan)

    # Configure CORS (all origins unless CORS_ORIGINS is set)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.registry = registry
    protocol = app.state.protocol = RoomProtocolHandler(registry)
    manager = app.state.connections = ConnectionManager()

    app.include_router(rooms_router)

    @app.get("/", response_model=StatusResponse)
    async def get_status():
        """Process status for diagnostics: live room count and total tracked users."""
        return StatusResponse(
            message="Location Sharing Server is running!",
            timestamp=utc_timestamp(),
            active_rooms=registry.room_count(),
            connected_users=registry.user_count(),
        )

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """One WebSocket is one connection.

        Frames are JSON text: ``{"event": "<name>", "data": {...}}``. Closing the
        socket is the ``disconnect`` event and runs the same cleanup as ``leave-room``.
        """
        connection_id = str(uuid.uuid4())
        await websocket.accept()
        manager.register(connection_id, websocket)
        logger.info(f"New client connected: {connection_id}")

        try:
            message_count = 0
            while True:
                try:
                    data = await websocket.receive_text()
                except WebSocketDisconnect:
                    logger.info(f"Client disconnected: {connection_id}")
                    break
                message_count += 1
                logger.debug(f"Received message #{message_count} from connection {connection_id}")

                try:
                    frame = json.loads(data)
                except json.JSONDecodeError:
                    manager.deliver([protocol.error(connection_id, "Message is not valid JSON")])
                    continue

                if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
                    manager.deliver([protocol.error(connection_id, "Message must be an object with a string 'event'")])
                    continue

                try:
                    manager.deliver(protocol.handle(connection_id, frame["event"], frame.get("data")))
                except Exception as e:
                    # A fault in one event must not take the connection down
                    logger.error(f"Error handling {frame['event']} from connection {connection_id}: {e}", exc_info=True)
        except Exception as e:
            logger.error(f"WebSocket error for connection {connection_id}: {e}", exc_info=True)
        finally:
            manager.deliver(protocol.disconnect(connection_id))
            await manager.unregister(connection_id)
            try:
                await websocket.close()
            except Exception as e:
                logger.debug(f"Error closing WebSocket: {e}")

    logger.info("FastAPI application initialized")
    return app


app = create_app()
