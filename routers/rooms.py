from fastapi import APIRouter, HTTPException, Request
from typing import List
from schemas.rooms import RoomSummary, RoomDetailsResponse
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


@rooms_router.get("/", response_model=List[RoomSummary])
async def list_rooms(request: Request):
    """Same summaries the WebSocket clients receive as `update rooms`."""
    engine = request.app.state.engine
    summaries = engine.room_summaries()
    logger.debug(f"Room list requested, {len(summaries)} rooms")
    return summaries


@rooms_router.get("/{room_name}", response_model=RoomDetailsResponse)
async def get_room_details(room_name: str, request: Request):
    """
    Get details for a single room.

    Returns:
    - name: Room name
    - has_password: Whether the room is password protected
    - current_users: Number of members right now
    - max_users: Capacity, null when unbounded
    - is_full: Whether the room has reached capacity
    - admin: Nickname of the current admin

    The password itself and member connection ids are never returned.
    """
    engine = request.app.state.engine
    details = engine.room_details(room_name)
    if details is None:
        logger.warning(f"Room details failed: Room {room_name!r} not found")
        raise HTTPException(status_code=404, detail="Room not found")

    logger.info(f"Room details retrieved for {room_name!r}: {details['current_users']} users online")
    return RoomDetailsResponse(**details)
