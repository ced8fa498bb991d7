"""HTTP and WebSocket tests against the FastAPI application."""

import events


def send(ws, event, data=None):
    ws.send_json({"event": event, "data": data or {}})


def receive(ws):
    frame = ws.receive_json()
    return frame["event"], frame["data"]


class TestStatusEndpoint:
    """GET /"""

    def test_empty_status(self, client):
        response = client.get("/")

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Location Sharing Server is running!"
        assert body["activeRooms"] == 0
        assert body["connectedUsers"] == 0
        assert body["timestamp"].endswith("Z")

    def test_status_counts_rooms_and_users(self, client, registry):
        r1 = registry.get_or_create_room("r1")
        registry.add_member(r1, "A", "c1")
        registry.add_member(r1, "B", "c2")
        registry.add_member(registry.get_or_create_room("r2"), "C", "c3")

        body = client.get("/").json()

        assert body["activeRooms"] == 2
        assert body["connectedUsers"] == 3


class TestRoomEndpoint:
    """GET /room/{room_id}"""

    def test_missing_room(self, client):
        response = client.get("/room/nowhere")

        assert response.status_code == 200
        assert response.json() == {"exists": False, "users": [], "message": "Room not found"}

    def test_existing_room(self, client, registry):
        room = registry.get_or_create_room("r1")
        registry.add_member(room, "A", "c1")
        registry.add_member(room, "B", "c2")
        timestamp = registry.update_location(room, "A", 10.0, 20.0)

        body = client.get("/room/r1").json()

        assert body == {
            "exists": True,
            "users": ["A", "B"],
            "userCount": 2,
            "locations": {
                "A": {"latitude": 10.0, "longitude": 20.0, "lastUpdate": timestamp},
                "B": {"latitude": None, "longitude": None, "lastUpdate": None},
            },
        }


class TestWebSocket:
    """/ws event frames"""

    def test_join_share_and_leave(self, client, registry):
        with client.websocket_connect("/ws") as alice:
            send(alice, events.JOIN_ROOM, {"roomId": "r1", "userId": "A"})
            event, data = receive(alice)
            assert event == events.JOINED_ROOM
            assert data["usersInRoom"] == ["A"]

            with client.websocket_connect("/ws") as bob:
                send(bob, events.JOIN_ROOM, {"roomId": "r1", "userId": "B"})
                assert receive(bob)[1]["usersInRoom"] == ["A", "B"]
                assert receive(alice) == (events.USER_JOINED, {
                    "userId": "B",
                    "message": "B joined the room",
                    "usersInRoom": ["A", "B"],
                })

                send(alice, events.SHARE_LOCATION, {"roomId": "r1", "userId": "A", "latitude": 10, "longitude": 20})
                event, data = receive(bob)
                assert event == events.LOCATION_UPDATE
                assert (data["userId"], data["latitude"], data["longitude"]) == ("A", 10, 20)
                event, data = receive(alice)
                assert event == events.LOCATION_SHARED
                assert data["success"] is True

                send(bob, events.GET_ALL_LOCATIONS, {"roomId": "r1"})
                event, data = receive(bob)
                assert event == events.ALL_LOCATIONS
                assert list(data) == ["A"]

            # Bob's socket closed: disconnect cleanup announces it to Alice
            assert receive(alice) == (events.USER_LEFT, {
                "userId": "B",
                "message": "B left the room",
                "usersInRoom": ["A"],
            })
            assert registry.member_ids(registry.get_room("r1")) == ["A"]

            send(alice, events.LEAVE_ROOM)
            send(alice, events.GET_ALL_LOCATIONS, {"roomId": "r1"})
            assert receive(alice) == (events.ERROR, {"message": "Room not found"})
            assert registry.room_count() == 0

    def test_errors_keep_connection_open(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_text("not json")
            event, data = receive(ws)
            assert event == events.ERROR
            assert data["message"] == "Message is not valid JSON"

            ws.send_json(["join-room"])
            assert receive(ws)[0] == events.ERROR

            send(ws, events.SHARE_LOCATION, {"roomId": "r1", "userId": "A", "latitude": 1, "longitude": 2})
            assert receive(ws) == (events.ERROR, {"message": "User not found in room or room does not exist"})

            send(ws, events.JOIN_ROOM, {"roomId": "r1", "userId": "A"})
            assert receive(ws)[0] == events.JOINED_ROOM

    def test_existing_locations_sent_to_late_joiner(self, client):
        with client.websocket_connect("/ws") as alice:
            send(alice, events.JOIN_ROOM, {"roomId": "r1", "userId": "A"})
            receive(alice)
            send(alice, events.SHARE_LOCATION, {"roomId": "r1", "userId": "A", "latitude": -33.5, "longitude": 151.2})
            receive(alice)

            with client.websocket_connect("/ws") as bob:
                send(bob, events.JOIN_ROOM, {"roomId": "r1", "userId": "B"})
                assert receive(bob)[0] == events.JOINED_ROOM
                event, data = receive(bob)
                assert event == events.EXISTING_LOCATIONS
                assert data["A"]["latitude"] == -33.5
                assert data["A"]["longitude"] == 151.2
