from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from contextlib import asynccontextmanager
from routers.rooms import rooms_router
from schemas.events import (
    InboundFrame,
    SetNicknameRequest,
    CreateRoomRequest,
    JoinRoomRequest,
    ChatMessageRequest,
    KickUserRequest,
    GetUsersRequest,
)
from schemas.rooms import HealthResponse
from backend import ConnectionRegistry, RoomDirectory
from dispatcher import BroadcastDispatcher, make_frame
from membership import MembershipEngine
import events
import uuid
import json
import asyncio
from typing import Dict
from constants import CORS_ORIGINS, LOG_FILE, LOG_LEVEL, OUTBOX_MAX_SIZE
from logging_config import get_logger, setup_logging

# Setup logging
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
logger = get_logger(__name__)


# queued in place of a frame to make the sender task close the socket
CLOSE_OUTBOX = None


class OutboxHub:
    """Per-connection outbound queues.

    The engine delivers into these without awaiting; each WebSocket has a
    sender task draining its own queue, so a slow client never holds the
    engine lock. A client that lets its queue fill up is cut off: the
    pending frames are discarded and the sender task closes the socket.
    """

    def __init__(self, max_size: int = OUTBOX_MAX_SIZE):
        self.max_size = max_size
        # Format: {connection_id: queue of frames}
        self.outboxes: Dict[str, asyncio.Queue] = {}

    def open(self, connection_id: str) -> asyncio.Queue:
        # one slot kept free for the close marker
        queue = asyncio.Queue(maxsize=self.max_size + 1)
        self.outboxes[connection_id] = queue
        return queue

    def close(self, connection_id: str):
        self.outboxes.pop(connection_id, None)

    def deliver(self, connection_id: str, frame: dict):
        queue = self.outboxes.get(connection_id)
        if queue is None:
            logger.debug(f"Dropping {frame['event']!r} for closed connection {connection_id}")
            return
        if queue.qsize() >= self.max_size:
            self._overflow(connection_id, queue)
            return
        queue.put_nowait(frame)

    def _overflow(self, connection_id: str, queue: asyncio.Queue):
        logger.warning(f"Outbox for connection {connection_id} is full ({self.max_size} frames), disconnecting")
        self.outboxes.pop(connection_id, None)
        while not queue.empty():
            queue.get_nowait()
        queue.put_nowait(CLOSE_OUTBOX)

    def __len__(self) -> int:
        return len(self.outboxes)


@asynccontextmanager
async def lifespan(app: FastAPI):
    connections = ConnectionRegistry()
    rooms = RoomDirectory()
    outboxes = OutboxHub()
    dispatcher = BroadcastDispatcher(connections, rooms, outboxes.deliver)
    app.state.outboxes = outboxes
    app.state.engine = MembershipEngine(connections, rooms, dispatcher)
    logger.info("Room registries initialized")
    yield
    logger.info(f"Shutting down with {len(outboxes)} open connections")


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(rooms_router)

logger.info("FastAPI application initialized")


@app.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(status="ok", **app.state.engine.stats())


def handle_set_nickname(engine: MembershipEngine, connection_id: str, data):
    if isinstance(data, str):
        data = {"nickname": data}
    request = SetNicknameRequest.model_validate(data)
    engine.set_nickname(connection_id, request.nickname)


def handle_create_room(engine: MembershipEngine, connection_id: str, data):
    request = CreateRoomRequest.model_validate(data)
    engine.create_or_join(connection_id, request.room_name, request.password, request.max_users)


def handle_join_room(engine: MembershipEngine, connection_id: str, data):
    request = JoinRoomRequest.model_validate(data)
    engine.join(connection_id, request.room_name, request.password)


def handle_chat_message(engine: MembershipEngine, connection_id: str, data):
    request = ChatMessageRequest.model_validate(data)
    engine.chat(connection_id, request.room, request.msg)


def handle_kick_user(engine: MembershipEngine, connection_id: str, data):
    request = KickUserRequest.model_validate(data)
    engine.kick(connection_id, request.room_name, request.user_id)


def handle_get_users(engine: MembershipEngine, connection_id: str, data):
    if isinstance(data, dict):
        data = data.get("roomName")
    request = GetUsersRequest(room_name=data)
    engine.list_members(connection_id, request.room_name)


EVENT_HANDLERS = {
    events.SET_NICKNAME: handle_set_nickname,
    events.CREATE_ROOM: handle_create_room,
    events.JOIN_ROOM: handle_join_room,
    events.CHAT_MESSAGE: handle_chat_message,
    events.KICK_USER: handle_kick_user,
    events.GET_USERS: handle_get_users,
}


def handle_frame(engine: MembershipEngine, connection_id: str, raw: str):
    """Decode one inbound frame and run it. Bad frames are logged and dropped."""
    try:
        frame = InboundFrame.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning(f"Dropping malformed frame from {connection_id}: {e}")
        return

    handler = EVENT_HANDLERS.get(frame.event)
    if handler is None:
        logger.warning(f"Dropping unknown event {frame.event!r} from {connection_id}")
        return

    logger.debug(f"Received {frame.event!r} from {connection_id}")
    try:
        handler(engine, connection_id, frame.data)
    except ValidationError as e:
        logger.warning(f"Invalid {frame.event!r} payload from {connection_id}: {e.error_count()} errors")
    except Exception as e:
        logger.error(f"Error handling {frame.event!r} from {connection_id}: {e}", exc_info=True)


async def send_outbox(websocket: WebSocket, connection_id: str, queue: asyncio.Queue):
    """Drain one connection's outbox onto its WebSocket."""
    try:
        while True:
            frame = await queue.get()
            if frame is CLOSE_OUTBOX:
                await websocket.close(code=1008, reason="Outbox overflow")
                return
            await websocket.send_text(json.dumps(frame))
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.warning(f"Error sending to connection {connection_id}, closing: {e}")
        try:
            await websocket.close()
        except Exception as close_error:
            logger.debug(f"Error closing WebSocket: {close_error}")


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """One client session. Frames are JSON objects `{"event": ..., "data": ...}`."""
    engine: MembershipEngine = websocket.app.state.engine
    outboxes: OutboxHub = websocket.app.state.outboxes

    await websocket.accept()
    connection_id = str(uuid.uuid4())
    logger.info(f"WebSocket connection accepted: {connection_id}")

    queue = outboxes.open(connection_id)
    engine.connect(connection_id)
    outboxes.deliver(connection_id, make_frame(events.CONNECTED, {"id": connection_id}))
    sender = asyncio.create_task(send_outbox(websocket, connection_id, queue))

    try:
        while True:
            try:
                data = await websocket.receive_text()
            except WebSocketDisconnect:
                logger.info(f"WebSocket disconnected normally for connection {connection_id}")
                break
            handle_frame(engine, connection_id, data)
    except Exception as e:
        logger.error(f"WebSocket error for connection {connection_id}: {e}", exc_info=True)
    finally:
        # Cleanup on disconnect
        engine.disconnect(connection_id)
        outboxes.close(connection_id)
        sender.cancel()
        try:
            await sender
        except asyncio.CancelledError:
            pass
