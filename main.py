import logging
from datetime import date
from typing import Annotated, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm
from pydantic import BaseModel, field_validator

import config
from authorization import Session, SessionExpired, get_current_session, get_session
from availability import BookingRejected, local_now, meetings_on, slot_end_label, sort_meetings, time_slots, upcoming_meetings
from model import Meeting, NewUser, Room, RoomData, RoomUpdate, TimeSlot, User, WireModel, validate_new_user
from store import ApiError

logging.basicConfig(level=config.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Meeting Room Booking")

# error handling

@app.exception_handler(SessionExpired)
async def session_expired(request: Request, error: SessionExpired):
    return JSONResponse(status_code=401, content={"detail": "Invalid authentication credentials"}, headers={"WWW-Authenticate": "Bearer"})

@app.exception_handler(BookingRejected)
async def booking_rejected(request: Request, error: BookingRejected):
    return JSONResponse(status_code=400, content={"detail": str(error)})

# the store's own message is passed on, its server errors become a bad gateway
@app.exception_handler(ApiError)
async def store_error(request: Request, error: ApiError):
    if error.status_code is None or error.status_code >= 500:
        logger.error("Booking store failed on %s %s: %s", request.method, request.url.path, error.message)
        return JSONResponse(status_code=502, content={"detail": error.message})
    return JSONResponse(status_code=error.status_code, content={"detail": error.message})

# authorization

@app.post("/token")
async def login(form_data: Annotated[OAuth2PasswordRequestForm, Depends()], session: Annotated[Session, Depends(get_session)]):
    auth = await session.login(form_data.username, form_data.password)
    return { "access_token": auth.token, "token_type": "bearer" }

@app.post("/register")
async def register(new_user: NewUser, session: Annotated[Session, Depends(get_session)]):
    validate_new_user(new_user)
    auth = await session.register(new_user)
    return { "access_token": auth.token, "token_type": "bearer", "user": auth.user }

@app.get("/users/me", response_model=User)
async def read_users_me(session: Annotated[Session, Depends(get_current_session)]):
    return session.user

# dashboard

class Dashboard(WireModel):
    user: User
    room_count: int
    meeting_count: int
    today: list[Meeting]
    upcoming: list[Meeting]

@app.get("/dashboard", response_model=Dashboard)
async def dashboard(session: Annotated[Session, Depends(get_current_session)]):
    await session.refresh()
    now = local_now()
    return Dashboard(
        user=session.user,
        room_count=len(session.rooms),
        meeting_count=len(session.meetings),
        today=sort_meetings(meetings_on(session.meetings, now.date())),
        upcoming=upcoming_meetings(session.meetings, now),
    )

@app.get("/slots")
async def slots_list():
    return [{ "start": slot, "end": slot_end_label(slot) } for slot in time_slots]

## rooms

@app.get("/rooms/list", response_model=list[Room])
async def rooms_list(session: Annotated[Session, Depends(get_current_session)]):
    return await session.load_rooms()

@app.get("/rooms/availability", response_model=list[TimeSlot])
async def rooms_availability(session: Annotated[Session, Depends(get_current_session)], room_id: str, day: Annotated[date, Query(alias="date")]):
    return await session.room_slots(room_id, day)

@app.post("/rooms/create", response_model=Room)
async def rooms_create(session: Annotated[Session, Depends(get_current_session)], new_room: RoomData):
    return await session.add_room(new_room)

class RoomChange(BaseModel):
    id: str
    data: RoomUpdate

@app.post("/rooms/update", response_model=Room)
async def rooms_update(session: Annotated[Session, Depends(get_current_session)], update: RoomChange):
    return await session.edit_room(update.id, update.data)

class RoomDelete(BaseModel):
    id: str

@app.post("/rooms/delete")
async def rooms_delete(session: Annotated[Session, Depends(get_current_session)], delete: RoomDelete):
    await session.remove_room(delete.id)
    return { "success": True }

## meetings

class SlotSelection(BaseModel):
    day: Optional[date] = None
    slot: Optional[str] = None

    @field_validator("slot")
    @classmethod
    def check_slot(cls, slot: Optional[str]):
        if slot and slot not in time_slots:
            raise ValueError(f"Slot must be one of {', '.join(time_slots)}")
        return slot

class MeetingBooking(SlotSelection):
    title: str
    description: Optional[str] = None
    room_id: str

@app.get("/meetings/list", response_model=list[Meeting])
async def meetings_list(session: Annotated[Session, Depends(get_current_session)]):
    return sort_meetings(await session.load_meetings())

@app.post("/meetings/create", response_model=Meeting)
async def meetings_create(session: Annotated[Session, Depends(get_current_session)], booking: MeetingBooking):
    await session.load_meetings()
    return await session.book(booking.title, booking.room_id, booking.day, booking.slot, booking.description)

class MeetingChangeData(SlotSelection):
    title: Optional[str] = None
    description: Optional[str] = None
    room_id: Optional[str] = None

class MeetingChange(BaseModel):
    id: str
    data: MeetingChangeData

@app.post("/meetings/update", response_model=Meeting)
async def meetings_update(session: Annotated[Session, Depends(get_current_session)], update: MeetingChange):
    await session.load_meetings()
    data = update.data
    return await session.reschedule(update.id, data.title, data.description, data.room_id, data.day, data.slot)

class MeetingDelete(BaseModel):
    id: str

@app.post("/meetings/delete")
async def meetings_delete(session: Annotated[Session, Depends(get_current_session)], delete: MeetingDelete):
    await session.cancel(delete.id)
    return { "success": True }
