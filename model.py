from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

min_password_length = 6

# the booking store speaks camelCase json, attributes stay snake_case
class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self):
        return self.model_dump(mode='json', by_alias=True, exclude_none=True)

## user

class User(WireModel):
    id: str
    name: str
    email: str
    created_at: Optional[datetime] = None

class AuthResponse(WireModel):
    message: Optional[str] = None
    user: User
    token: str

class NewUser(BaseModel):
    name: str
    email: str
    password: str
    password_confirmation: str

def validate_new_user(new_user: NewUser):
    if new_user.password != new_user.password_confirmation:
        raise HTTPException(status_code=400, detail="Passwords do not match")
    if len(new_user.password) < min_password_length:
        raise HTTPException(status_code=400, detail=f"Password must be at least {min_password_length} characters long")

## room

class RoomData(WireModel):
    name: str = Field(min_length=1)
    capacity: int = Field(ge=1)
    location: Optional[str] = None
    description: Optional[str] = None

class RoomUpdate(WireModel):
    name: Optional[str] = Field(default=None, min_length=1)
    capacity: Optional[int] = Field(default=None, ge=1)
    location: Optional[str] = None
    description: Optional[str] = None

class Room(RoomData):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

## meeting

class MeetingData(WireModel):
    title: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    room_id: str

class MeetingUpdate(WireModel):
    title: Optional[str] = None
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    room_id: Optional[str] = None

class Meeting(MeetingData):
    id: str
    user_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    room: Optional[Room] = None
    user: Optional[User] = None

## time slot

class TimeSlot(WireModel):
    time: str
    is_occupied: bool
    meeting: Optional[Meeting] = None
