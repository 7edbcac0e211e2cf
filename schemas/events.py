from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Optional


class InboundFrame(BaseModel):
    event: str
    data: Any = None


class EventPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


def strip_name(value):
    if isinstance(value, str):
        return value.strip()
    return value


class SetNicknameRequest(EventPayload):
    nickname: str = Field(min_length=1)

    @field_validator("nickname", mode="before")
    @classmethod
    def strip_nickname(cls, value):
        return strip_name(value)


class CreateRoomRequest(EventPayload):
    room_name: str = Field(alias="roomName", min_length=1)
    password: Optional[str] = None
    # absent, null or non-positive means unbounded
    max_users: Optional[int] = Field(default=None, alias="maxUsers")

    @field_validator("room_name", mode="before")
    @classmethod
    def strip_room_name(cls, value):
        return strip_name(value)

    @field_validator("max_users", mode="before")
    @classmethod
    def empty_max_users(cls, value):
        if value == "":
            return None
        return value


class JoinRoomRequest(EventPayload):
    room_name: str = Field(alias="roomName", min_length=1)
    password: Optional[str] = None

    @field_validator("room_name", mode="before")
    @classmethod
    def strip_room_name(cls, value):
        return strip_name(value)


class ChatMessageRequest(EventPayload):
    # text is delivered exactly as sent
    room: str
    msg: str


class KickUserRequest(EventPayload):
    room_name: str = Field(alias="roomName")
    user_id: str = Field(alias="userId")


class GetUsersRequest(EventPayload):
    room_name: str = Field(min_length=1)
