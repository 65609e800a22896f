from fastapi import APIRouter, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from typing import Any, Dict, Optional
from datetime import datetime
import structlog
from langchain_core.language_models.chat_models import BaseChatModel

from .connection_manager import ConnectionManager
from .schema.events import get_codec, parse_snapshot
from mentor.application.api.route.session import is_valid_session_id, router as session_router
from mentor.domain.errors import BaselineStoreError
from mentor.domain.inference import InferenceGateway, create_inference_gateway
from mentor.domain.session.gating import GatePolicy
from mentor.domain.session.session_registry import SessionRegistry
from mentor.domain.session.store import BaselineStore, create_baseline_store
from mentor.domain.streaming.streaming_handler import StreamingHandler
from mentor.infrastructure.config.settings import Settings, get_settings
from mentor.infrastructure.observability.logging import metrics, setup_logging

logger = structlog.get_logger(__name__)

router = APIRouter()


async def receive_frame(websocket: WebSocket) -> str:
    """Receive one text or binary frame as text"""
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", 1000))

    if message.get("text") is not None:
        return message["text"]
    return (message.get("bytes") or b"").decode("utf-8", errors="replace")


@router.websocket("/ws/session/{session_id}")
async def session_websocket(websocket: WebSocket, session_id: str):
    """Main WebSocket endpoint: snapshots in, advisories out"""

    if not is_valid_session_id(session_id):
        await websocket.close(code=1008, reason="Invalid session ID format")
        return

    state = websocket.app.state
    connection_manager: ConnectionManager = state.connection_manager

    try:
        actor = await state.registry.get_or_create(session_id)
    except BaselineStoreError as e:
        logger.error("Could not load session", session_id=session_id, error=str(e))
        await websocket.close(code=1011, reason="Session store unavailable")
        return

    await connection_manager.attach(websocket, session_id, actor)

    try:
        # Main message loop
        while True:
            frame = await receive_frame(websocket)

            try:
                # Not awaited: the outcome reaches every attached connection via broadcast
                actor.submit(parse_snapshot(frame))

            except Exception as e:
                logger.error("Error processing message", error=str(e), session_id=session_id)
                await connection_manager.send_error(
                    websocket,
                    f"Error processing message: {str(e)}",
                    session_id=session_id
                )

    except WebSocketDisconnect:
        logger.info("Client disconnected", session_id=session_id)
    except Exception as e:
        logger.error("WebSocket error", error=str(e), session_id=session_id)
    finally:
        await connection_manager.detach(websocket)


@router.get("/health")
async def health_check(request: Request) -> Dict[str, Any]:
    """Health check endpoint"""
    state = request.app.state
    registry: Optional[SessionRegistry] = state.registry

    return {
        "status": "healthy" if registry is not None else "starting",
        "active_connections": state.connection_manager.connection_count(),
        "active_sessions": len(registry.get_active_sessions()) if registry else 0,
        "metrics": metrics.get_metrics_summary(),
        "timestamp": datetime.utcnow().isoformat()
    }


def create_app(
    settings: Optional[Settings] = None,
    gateway: Optional[InferenceGateway] = None,
    store: Optional[BaselineStore] = None,
    chat_model: Optional[BaseChatModel] = None
) -> FastAPI:
    """Build the server; gateway and store default to the configured ones.

    chat_model backs the gateway when gateway_provider is "chat_model".
    """

    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format, settings.service_name)

    app = FastAPI(title="Mentor Session Server")

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    connection_manager = ConnectionManager(codec=get_codec(settings.wire_format))
    streaming_handler = StreamingHandler(connection_manager)

    app.state.settings = settings
    app.state.connection_manager = connection_manager
    app.state.streaming_handler = streaming_handler
    app.state.registry = None

    @app.on_event("startup")
    async def startup_event():
        """Create the session registry"""
        app.state.registry = SessionRegistry(
            store=store or create_baseline_store(settings),
            gateway=gateway or create_inference_gateway(settings, chat_model),
            gate_policy=GatePolicy(settings.change_threshold),
            gateway_timeout=settings.gateway_timeout_seconds,
            coalesce=settings.coalesce_snapshots,
            listeners=[streaming_handler.handle_outcome]
        )

        logger.info(
            "Mentor server started",
            threshold=settings.change_threshold,
            store_backend=settings.store_backend if store is None else type(store).__name__,
            wire_format=settings.wire_format
        )

    @app.on_event("shutdown")
    async def shutdown_event():
        """Cleanup on shutdown"""
        await connection_manager.close_all()

        registry: Optional[SessionRegistry] = app.state.registry
        if registry is not None:
            await registry.shutdown()
            await registry.gateway.aclose()
            await registry.store.close()

        logger.info("Mentor server shutdown")

    app.include_router(router)
    app.include_router(session_router)

    return app


def main():
    import uvicorn

    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
