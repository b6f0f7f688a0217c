import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Annotated, Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from availability import compute_daily_slots, local_now, merge_by_id, remove_by_id, slot_window, validate_new_booking
from model import AuthResponse, Meeting, MeetingData, MeetingUpdate, NewUser, RoomData, RoomUpdate
from store import ApiClient, ApiError

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token")

class SessionExpired(Exception):
    pass

# the store signs its own tokens, so the claims can only be read, not trusted
def token_expired(token: str, now: Optional[datetime] = None):
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return False
    expire = claims.get("exp")
    if expire is None:
        return False
    try:
        expire = float(expire)
    except (TypeError, ValueError):
        return False
    now = now or datetime.now(timezone.utc)
    return expire <= now.timestamp()

class Session:
    """One authenticated user talking to the booking store.

    The session is started by ``login``, ``register`` or ``restore`` and torn
    down by ``logout``, which also happens as soon as the store rejects the
    credential. ``meetings`` and ``rooms`` are a local snapshot loaded by
    ``refresh``; mutations are merged into it by id once the store accepts
    them. A later ``refresh`` replaces the snapshot wholesale, so whichever
    finishes last wins.
    """

    def __init__(self, store: ApiClient):
        self.store = store
        self.token: Optional[str] = None
        self.user = None
        self.meetings: list[Meeting] = []
        self.rooms = []

    @property
    def is_authenticated(self):
        return self.user is not None

    def start(self, auth: AuthResponse):
        self.token = auth.token
        self.store.token = auth.token
        self.user = auth.user

    def logout(self):
        if self.user is not None:
            logger.info("Ending session for user %s", self.user.id)
        self.token = None
        self.store.token = None
        self.user = None
        self.meetings = []
        self.rooms = []

    async def call(self, operation, *args):
        try:
            return await operation(*args)
        except ApiError as error:
            if error.status_code == 401:
                self.logout()
                raise SessionExpired(error.message) from error
            raise

    ## authentication

    async def login(self, email: str, password: str):
        auth = await self.store.login(email, password)
        self.start(auth)
        logger.info("User %s logged in", auth.user.id)
        return auth

    async def register(self, new_user: NewUser):
        auth = await self.store.register(new_user.name, new_user.email, new_user.password)
        self.start(auth)
        logger.info("Registered user %s", auth.user.id)
        return auth

    async def restore(self, token: str):
        if token_expired(token):
            self.logout()
            raise SessionExpired("Session expired")
        self.token = token
        self.store.token = token
        try:
            self.user = await self.call(self.store.get_me)
        except ApiError:
            self.logout()
            raise
        return self.user

    ## snapshot

    async def load_meetings(self):
        self.meetings = await self.call(self.store.get_meetings)
        return self.meetings

    async def load_rooms(self):
        self.rooms = await self.call(self.store.get_rooms)
        return self.rooms

    async def refresh(self):
        # the snapshot is only replaced once both loads have succeeded
        meetings, rooms = await asyncio.gather(
            self.call(self.store.get_meetings),
            self.call(self.store.get_rooms),
            return_exceptions=True,
        )
        for result in (meetings, rooms):
            if isinstance(result, BaseException):
                raise result
        self.meetings = meetings
        self.rooms = rooms

    def own_meetings(self):
        return [meeting for meeting in self.meetings if meeting.user_id == self.user.id]

    async def room_slots(self, room_id: str, day: date):
        meetings = await self.call(self.store.get_room_meetings, room_id, day)
        return compute_daily_slots(meetings, day)

    ## meetings

    async def book(self, title: str, room_id: str, day: Optional[date], slot: Optional[str], description: Optional[str] = None, now: Optional[datetime] = None):
        start = end = None
        if day is not None and slot:
            start, end = slot_window(day, slot)
        validate_new_booking(self.own_meetings(), start, end, now or local_now())

        data = MeetingData(title=title, description=description, start_time=start, end_time=end, room_id=room_id)
        meeting = await self.call(self.store.create_meeting, data)
        self.meetings = merge_by_id(self.meetings, meeting)
        logger.info("User %s booked room %s at %s", self.user.id, room_id, start.isoformat())
        return meeting

    async def reschedule(self, meeting_id: str, title: Optional[str] = None, description: Optional[str] = None, room_id: Optional[str] = None, day: Optional[date] = None, slot: Optional[str] = None, now: Optional[datetime] = None):
        update = MeetingUpdate(title=title, description=description, room_id=room_id)
        if day is not None or slot:
            start = end = None
            if day is not None and slot:
                start, end = slot_window(day, slot)
            # the meeting being moved does not block its own new time
            others = [meeting for meeting in self.own_meetings() if meeting.id != meeting_id]
            validate_new_booking(others, start, end, now or local_now())
            update.start_time = start
            update.end_time = end

        meeting = await self.call(self.store.update_meeting, meeting_id, update)
        self.meetings = merge_by_id(self.meetings, meeting)
        return meeting

    async def cancel(self, meeting_id: str):
        await self.call(self.store.delete_meeting, meeting_id)
        self.meetings = remove_by_id(self.meetings, meeting_id)
        logger.info("User %s cancelled meeting %s", self.user.id, meeting_id)

    ## rooms

    async def add_room(self, data: RoomData):
        room = await self.call(self.store.create_room, data)
        self.rooms = merge_by_id(self.rooms, room)
        return room

    async def edit_room(self, room_id: str, data: RoomUpdate):
        room = await self.call(self.store.update_room, room_id, data)
        self.rooms = merge_by_id(self.rooms, room)
        return room

    async def remove_room(self, room_id: str):
        await self.call(self.store.delete_room, room_id)
        self.rooms = remove_by_id(self.rooms, room_id)

async def get_store():
    async with ApiClient() as store:
        yield store

async def get_session(store: Annotated[ApiClient, Depends(get_store)]):
    return Session(store)

async def get_current_session(token: Annotated[str, Depends(oauth2_scheme)], session: Annotated[Session, Depends(get_session)]):
    await session.restore(token)
    return session
