"""Integration tests for the REST and WebSocket API (fake UoW via dependency override)."""
from __future__ import annotations

import uuid
from decimal import Decimal

import jwt
import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from market_chat.api.deps import get_directory, get_gateway, get_uow
from market_chat.app import create_app
from market_chat.application.exceptions import PersistenceError
from market_chat.config import settings
from market_chat.domain.entities.profile import ProductSummary, UserSummary
from market_chat.infrastructure.directory.static_directory import StaticDirectory
from market_chat.infrastructure.ws.gateway import RealtimeGateway
from tests.conftest import FakeClock, FakeUoW, fake_uow_factory, make_message


def _make_token(sub: int = 42, roles: list | None = None) -> str:
    return jwt.encode(
        {"sub": str(sub), "roles": roles or []},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
    )


def _auth(sub: int = 42, roles: list | None = None) -> dict[str, str]:
    return {"Authorization": f"Bearer {_make_token(sub, roles)}"}


@pytest.fixture
def uow() -> FakeUoW:
    return FakeUoW()


@pytest.fixture
def client(uow):
    app = create_app()
    directory = StaticDirectory()
    directory.add_user(UserSummary(id=7, username="seller7"))
    directory.add_user(UserSummary(id=42, username="buyer42"))
    directory.add_product(ProductSummary(id=5, title="Bike", price=Decimal("99")))
    gateway = RealtimeGateway(fake_uow_factory(uow), directory=directory, clock=FakeClock())

    async def _override_uow():
        yield uow

    app.dependency_overrides[get_uow] = _override_uow
    app.dependency_overrides[get_directory] = lambda: directory
    app.dependency_overrides[get_gateway] = lambda: gateway
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


def test_healthz(client):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "online": 0}


def test_request_id_echoed(client):
    resp = client.get("/healthz", headers={"X-Request-ID": "abc123"})
    assert resp.headers["X-Request-ID"] == "abc123"
    assert client.get("/healthz").headers["X-Request-ID"]


def test_create_message(client, uow):
    resp = client.post(
        "/api/v1/messages",
        headers=_auth(42),
        json={"senderId": 42, "receiverId": 7, "content": "Still available?", "productId": 5},
    )

    assert resp.status_code == 201
    data = resp.json()
    assert data["senderId"] == 42
    assert data["productId"] == 5
    assert data["read"] is False
    assert len(uow.messages._messages) == 1


def test_create_message_validation(client, uow):
    resp = client.post(
        "/api/v1/messages",
        headers=_auth(42),
        json={"senderId": 42, "receiverId": 7, "content": "   "},
    )

    assert resp.status_code == 422
    assert "content" in resp.json()["detail"]
    assert uow.messages._messages == []


def test_cannot_send_as_someone_else(client):
    resp = client.post(
        "/api/v1/messages",
        headers=_auth(42),
        json={"senderId": 7, "receiverId": 42, "content": "spoof"},
    )
    assert resp.status_code == 403


def test_store_unavailable_is_503(client, uow):
    uow.messages_w.fail_with = PersistenceError("down")

    resp = client.post(
        "/api/v1/messages",
        headers=_auth(42),
        json={"senderId": 42, "receiverId": 7, "content": "hi"},
    )

    assert resp.status_code == 503


def test_unauthorized_returns_error(client):
    resp = client.get("/api/v1/messages/inbox/42")
    assert resp.status_code in (401, 403)

    resp = client.get("/api/v1/messages/inbox/42", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401


def test_conversation_history_with_product(client, uow):
    first = make_message(sender_id=42, receiver_id=7, product_id=5, minutes=1)
    second = make_message(sender_id=7, receiver_id=42, product_id=5, minutes=2)
    other = make_message(sender_id=7, receiver_id=42, minutes=3)
    uow.messages._messages.extend([second, other, first])

    resp = client.get(
        "/api/v1/messages/conversation/7/42", params={"productId": 5}, headers=_auth(42),
    )

    assert resp.status_code == 200
    data = resp.json()
    assert [m["id"] for m in data] == [str(first.id), str(second.id)]
    assert data[0]["product"]["title"] == "Bike"


def test_conversation_history_requires_party(client):
    resp = client.get("/api/v1/messages/conversation/7/8", headers=_auth(42))
    assert resp.status_code == 403

    resp = client.get("/api/v1/messages/conversation/7/8", headers=_auth(1, ["admin"]))
    assert resp.status_code == 200


def test_inbox_and_sent(client, uow):
    uow.messages._messages.extend([
        make_message(sender_id=7, receiver_id=42, minutes=1),
        make_message(sender_id=42, receiver_id=7, minutes=2),
    ])

    inbox = client.get("/api/v1/messages/inbox/42", headers=_auth(42)).json()
    sent = client.get("/api/v1/messages/sent/42", headers=_auth(42)).json()

    assert [m["sender"]["username"] for m in inbox] == ["seller7"]
    assert [m["receiver"]["username"] for m in sent] == ["seller7"]
    assert client.get("/api/v1/messages/inbox/7", headers=_auth(42)).status_code == 403


def test_list_conversations(client, uow):
    uow.messages._messages.extend([
        make_message(sender_id=7, receiver_id=42, product_id=5, minutes=1),
        make_message(sender_id=7, receiver_id=42, minutes=2),
    ])

    resp = client.get("/api/v1/messages/conversations/42", headers=_auth(42))

    assert resp.status_code == 200
    data = resp.json()
    assert [(c["otherUserId"], c["productId"], c["unreadCount"]) for c in data] == [
        (7, None, 2),
        (7, 5, 1),
    ]
    assert data[0]["otherUser"]["username"] == "seller7"
    assert data[0]["product"] is None
    assert data[1]["product"]["title"] == "Bike"


def test_unread_count(client, uow):
    uow.messages._messages.extend([
        make_message(sender_id=7, receiver_id=42, product_id=5),
        make_message(sender_id=7, receiver_id=42),
    ])

    resp = client.get(
        "/api/v1/messages/unread/42", params={"senderId": 7, "productId": 5}, headers=_auth(42),
    )

    assert resp.status_code == 200
    assert resp.json()["count"] == 1


def test_reply(client, uow):
    original = make_message(sender_id=7, receiver_id=42, product_id=5)
    uow.messages._messages.append(original)

    resp = client.post(
        "/api/v1/messages/reply",
        headers=_auth(42),
        json={"messageId": str(original.id), "content": "Deal"},
    )

    assert resp.status_code == 201
    data = resp.json()
    assert data["receiverId"] == 7
    assert data["repliedTo"] == str(original.id)
    assert data["productId"] == 5

    missing = client.post(
        "/api/v1/messages/reply",
        headers=_auth(42),
        json={"messageId": str(uuid.uuid4()), "content": "?"},
    )
    assert missing.status_code == 404


def test_mark_read(client, uow):
    msg = make_message(sender_id=7, receiver_id=42)
    uow.messages._messages.append(msg)

    assert client.patch(f"/api/v1/messages/{msg.id}/read", headers=_auth(7)).status_code == 403
    first = client.patch(f"/api/v1/messages/{msg.id}/read", headers=_auth(42))
    second = client.patch(f"/api/v1/messages/{msg.id}/read", headers=_auth(42))

    assert first.status_code == second.status_code == 200
    assert second.json()["read"] is True
    assert client.patch(f"/api/v1/messages/{uuid.uuid4()}/read", headers=_auth(42)).status_code == 404


def _join(ws, user_id: int) -> None:
    ws.send_json({"type": "join", "data": {"userId": user_id}})
    assert ws.receive_json() == {"type": "joined", "data": {"userId": user_id}}


def test_ws_requires_token(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws/chat"):
            pass
    assert exc_info.value.code == 4001


def test_ws_join_must_match_token(client):
    with client.websocket_connect(f"/ws/chat?token={_make_token(42)}") as ws:
        ws.send_json({"type": "join", "data": {"userId": 7}})
        assert ws.receive_json() == {"type": "error", "data": {"code": "identity_mismatch"}}


def test_ws_message_relay(client, uow):
    with client.websocket_connect(f"/ws/chat?token={_make_token(7)}") as seller:
        _join(seller, 7)
        with client.websocket_connect(f"/ws/chat?token={_make_token(42)}") as buyer:
            _join(buyer, 42)

            buyer.send_json({"type": "typing", "data": {"senderId": 42, "receiverId": 7, "productId": 5}})
            assert seller.receive_json() == {"type": "userTyping", "data": {"userId": 42, "productId": 5}}

            buyer.send_json({
                "type": "sendMessage",
                "data": {"senderId": 42, "receiverId": 7, "content": "Hi!", "productId": 5, "clientMsgId": "c1"},
            })
            confirmed = buyer.receive_json()
            received = seller.receive_json()

    assert confirmed["type"] == "messageConfirmed"
    assert received["type"] == "messageReceived"
    assert received["data"]["id"] == confirmed["data"]["id"] == str(uow.messages._messages[0].id)
    assert received["data"]["sender"]["username"] == "buyer42"
    assert received["data"]["product"]["title"] == "Bike"


def test_ws_send_failure(client, uow):
    with client.websocket_connect(f"/ws/chat?token={_make_token(42)}") as ws:
        _join(ws, 42)
        ws.send_json({"type": "sendMessage", "data": {"receiverId": 7, "content": ""}})
        frame = ws.receive_json()

    assert frame["type"] == "messageFailed"
    assert "content" in frame["data"]["error"]
    assert uow.messages._messages == []
