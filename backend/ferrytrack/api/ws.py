import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ferrytrack.models.schemas import TrackingFrame, utc_now

logger = logging.getLogger("ferrytrack.ws")

ws_router = APIRouter()


@ws_router.websocket("/ws/vessels")
async def vessel_ws(websocket: WebSocket):
    await websocket.accept()
    tracking = websocket.app.state.tracking
    queue = tracking.subscribe()
    logger.info("WebSocket client connected")

    try:
        # Current state first, then one frame per smoother tick
        current = TrackingFrame(generated_at=utc_now(), vessels=tracking.animated_vessels())
        await websocket.send_text(current.model_dump_json())
        while True:
            frame = await queue.get()
            await websocket.send_text(frame.model_dump_json())
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        tracking.unsubscribe(queue)
        logger.info("WebSocket client disconnected")
