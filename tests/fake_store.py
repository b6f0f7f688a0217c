import json
from datetime import datetime, timedelta, timezone
from itertools import count

import httpx
from jose import JWTError, jwt

store_url = "http://booking-store.test/api"
store_secret = "store-secret"
created = "2024-01-01T00:00:00"

def issue_token(user_id, lifetime=timedelta(hours=1)):
    expire = datetime.now(timezone.utc) + lifetime
    return jwt.encode({"sub": user_id, "exp": expire}, store_secret, algorithm="HS256")

def reply(status_code, data=None):
    return httpx.Response(status_code, json=data)

def error(status_code, message):
    return reply(status_code, {"error": message})

class FakeStore:
    """In-memory booking API, served to the client through httpx.MockTransport."""

    def __init__(self):
        self.users = {}
        self.passwords = {}
        self.rooms = {}
        self.meetings = {}
        self.requests = []
        self.offline = False
        self.ids = count(1)

    def new_id(self, kind):
        return f"{kind}-{next(self.ids)}"

    def add_user(self, name, email, password="secret1"):
        user = {"id": self.new_id("user"), "name": name, "email": email, "createdAt": created}
        self.users[user["id"]] = user
        self.passwords[email] = (password, user["id"])
        return user

    def add_room(self, name, capacity=8, location=None):
        room = {"id": self.new_id("room"), "name": name, "capacity": capacity, "createdAt": created, "updatedAt": created}
        if location is not None:
            room["location"] = location
        self.rooms[room["id"]] = room
        return room

    def add_meeting(self, user, room, start, title="Planning"):
        start_time = datetime.fromisoformat(start)
        meeting = {
            "id": self.new_id("meeting"),
            "title": title,
            "startTime": start_time.isoformat(),
            "endTime": (start_time + timedelta(hours=1)).isoformat(),
            "roomId": room["id"],
            "userId": user["id"],
            "createdAt": created,
            "updatedAt": created,
        }
        self.meetings[meeting["id"]] = meeting
        return meeting

    def requested(self, method, path):
        return [r for r in self.requests if r.method == method and r.url.path == "/api" + path]

    def __call__(self, request: httpx.Request):
        self.requests.append(request)
        if self.offline:
            raise httpx.ConnectError("connection refused", request=request)

        path = request.url.path[len("/api"):]
        body = json.loads(request.content) if request.content else None
        if request.method == "POST" and path == "/auth/login":
            return self.login(body)
        if request.method == "POST" and path == "/auth/register":
            return self.register(body)

        user = self.authenticate(request)
        if user is None:
            return error(401, "Invalid token")
        parts = path.strip("/").split("/")
        if path == "/auth/me":
            return reply(200, {"user": user})
        if parts[0] == "meetings":
            return self.route_meetings(request.method, parts[1:], body, user)
        if parts[0] == "rooms":
            return self.route_rooms(request.method, parts[1:], body)
        return error(404, "Not found")

    def authenticate(self, request):
        header = request.headers.get("Authorization", "")
        if not header.startswith("Bearer "):
            return None
        try:
            claims = jwt.decode(header[len("Bearer "):], store_secret, algorithms=["HS256"])
        except JWTError:
            return None
        return self.users.get(claims["sub"])

    def login(self, body):
        password, user_id = self.passwords.get(body["email"], (None, None))
        if password is None or password != body["password"]:
            return error(401, "Invalid email or password")
        return reply(200, {"message": "Login successful", "user": self.users[user_id], "token": issue_token(user_id)})

    def register(self, body):
        if body["email"] in self.passwords:
            return error(400, "Email already registered")
        user = self.add_user(body["name"], body["email"], body["password"])
        return reply(201, {"message": "User created", "user": user, "token": issue_token(user["id"])})

    def route_meetings(self, method, parts, body, user):
        if not parts:
            if method == "GET":
                return reply(200, [m for m in self.meetings.values() if m["userId"] == user["id"]])
            if body["roomId"] not in self.rooms:
                return error(404, "Room not found")
            if any(m["roomId"] == body["roomId"] and m["startTime"] == body["startTime"] for m in self.meetings.values()):
                return error(409, "This room is already booked for the selected time")
            meeting = {"id": self.new_id("meeting"), "userId": user["id"], "createdAt": created, "updatedAt": created, **body}
            self.meetings[meeting["id"]] = meeting
            return reply(201, meeting)

        meeting = self.meetings.get(parts[0])
        if meeting is None or meeting["userId"] != user["id"]:
            return error(404, "Meeting not found")
        if method == "PUT":
            meeting.update(body)
            return reply(200, meeting)
        del self.meetings[meeting["id"]]
        return reply(200, {"message": "Meeting cancelled"})

    def route_rooms(self, method, parts, body):
        if not parts:
            if method == "GET":
                return reply(200, list(self.rooms.values()))
            room = {"id": self.new_id("room"), "createdAt": created, "updatedAt": created, **body}
            self.rooms[room["id"]] = room
            return reply(201, room)

        room = self.rooms.get(parts[0])
        if room is None:
            return error(404, "Room not found")
        if len(parts) == 3 and parts[1] == "meetings":
            day = parts[2]
            return reply(200, [m for m in self.meetings.values() if m["roomId"] == room["id"] and m["startTime"].startswith(day)])
        if method == "PUT":
            room.update(body)
            return reply(200, room)
        del self.rooms[room["id"]]
        return reply(204)
