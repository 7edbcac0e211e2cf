# Inbound (client -> server)
SET_NICKNAME = "set nickname"
CREATE_ROOM = "create room"
JOIN_ROOM = "join room"
CHAT_MESSAGE = "chat message"  # also sent outbound to the room
KICK_USER = "kick user"
GET_USERS = "get users"

# Outbound (server -> requester / room / all)
CONNECTED = "connected"  # requester, {id}
UPDATE_ROOMS = "update rooms"  # requester on nickname set, all otherwise
ROOM_JOINED = "room joined"  # requester, {roomName, isAdmin}
ROOM_NOT_FOUND = "room not found"  # requester, no payload
WRONG_PASSWORD = "wrong password"  # requester, no payload
ROOM_FULL = "room full"  # requester, no payload
NICKNAME_REQUIRED = "nickname required"  # requester, no payload
USER_JOINED = "user joined"  # room, nickname
USER_LEFT = "user left"  # room, nickname
NEW_ADMIN = "new admin"  # room (or requester on self-election), nickname
KICKED = "kicked"  # target, room name
USER_LIST = "user list"  # requester, [{id, nickname, isAdmin}]
