import logging
from datetime import date
from typing import Optional

import httpx

import config
from model import AuthResponse, Meeting, MeetingData, MeetingUpdate, Room, RoomData, RoomUpdate, User

logger = logging.getLogger(__name__)

class ApiError(Exception):
    """An error reported by the booking store, or a failure to reach it.

    ``message`` is whatever the store said and is passed on as is.
    ``status_code`` is None when no response was received.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

class ApiClient:
    def __init__(self, base_url: str = config.api_url, timeout: float = config.api_timeout, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.http = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )
        self.token: Optional[str] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def close(self):
        await self.http.aclose()

    async def request(self, method: str, endpoint: str, body=None):
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            response = await self.http.request(method, endpoint, json=body, headers=headers)
        except httpx.HTTPError as error:
            logger.warning("%s %s failed: %s", method, endpoint, error)
            raise ApiError("Could not connect to the server") from error

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.is_error:
            message = data.get("error") if isinstance(data, dict) else None
            logger.info("%s %s returned %s: %s", method, endpoint, response.status_code, message)
            raise ApiError(message or "Request failed", response.status_code)
        return data

    ## authentication

    async def login(self, email: str, password: str):
        data = await self.request("POST", "/auth/login", {"email": email, "password": password})
        return AuthResponse.model_validate(data)

    async def register(self, name: str, email: str, password: str):
        data = await self.request("POST", "/auth/register", {"name": name, "email": email, "password": password})
        return AuthResponse.model_validate(data)

    async def get_me(self):
        data = await self.request("GET", "/auth/me")
        if not isinstance(data, dict) or not data.get("user"):
            raise ApiError("Invalid authentication credentials", 401)
        return User.model_validate(data["user"])

    ## meetings

    async def get_meetings(self):
        data = await self.request("GET", "/meetings")
        return [Meeting.model_validate(meeting) for meeting in data]

    async def create_meeting(self, meeting: MeetingData):
        data = await self.request("POST", "/meetings", meeting.to_wire())
        return Meeting.model_validate(data)

    async def update_meeting(self, id: str, meeting: MeetingUpdate):
        data = await self.request("PUT", f"/meetings/{id}", meeting.to_wire())
        return Meeting.model_validate(data)

    async def delete_meeting(self, id: str):
        await self.request("DELETE", f"/meetings/{id}")

    ## rooms

    async def get_rooms(self):
        data = await self.request("GET", "/rooms")
        return [Room.model_validate(room) for room in data]

    async def get_room_meetings(self, room_id: str, day: date):
        data = await self.request("GET", f"/rooms/{room_id}/meetings/{day.isoformat()}")
        return [Meeting.model_validate(meeting) for meeting in data]

    async def create_room(self, room: RoomData):
        data = await self.request("POST", "/rooms", room.to_wire())
        return Room.model_validate(data)

    async def update_room(self, id: str, room: RoomUpdate):
        data = await self.request("PUT", f"/rooms/{id}", room.to_wire())
        return Room.model_validate(data)

    async def delete_room(self, id: str):
        await self.request("DELETE", f"/rooms/{id}")
