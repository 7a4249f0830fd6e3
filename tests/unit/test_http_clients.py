from __future__ import annotations

import json
from decimal import Decimal

import httpx
import pytest

from market_chat.client.history import HistoryClient
from market_chat.infrastructure.directory.http_directory import HttpMarketplaceDirectory


def _directory(handler) -> HttpMarketplaceDirectory:
    return HttpMarketplaceDirectory(
        httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://market")
    )


@pytest.mark.asyncio
async def test_directory_resolves_user_and_product():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/users/7":
            return httpx.Response(200, json={"username": "seller7", "fullname": "Seven"})
        if request.url.path == "/products/5":
            return httpx.Response(200, json={"title": "Bike", "image": "bike.jpg", "price": "120.50"})
        return httpx.Response(404)

    directory = _directory(handler)

    user = await directory.get_user(7)
    product = await directory.get_product(5)

    assert user is not None and user.username == "seller7"
    assert product is not None and product.price == Decimal("120.50")
    assert await directory.get_user(8) is None
    await directory.aclose()


@pytest.mark.asyncio
async def test_directory_server_error_raises():
    directory = _directory(lambda request: httpx.Response(500))

    with pytest.raises(httpx.HTTPStatusError):
        await directory.get_product(5)


def _history(handler) -> HistoryClient:
    return HistoryClient(
        httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://chat")
    )


THREAD = [
    {"id": "m1", "senderId": 7, "receiverId": 42, "read": False},
    {"id": "m2", "senderId": 42, "receiverId": 7, "read": False},
    {"id": "m3", "senderId": 7, "receiverId": 42, "read": True},
    {"id": "m4", "senderId": 7, "receiverId": 42, "read": False},
]


@pytest.mark.asyncio
async def test_fetch_conversation_passes_product_filter():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[])

    async with _history(handler) as history:
        await history.fetch_conversation(42, 7, product_id=5)

    assert seen[0].url.path == "/api/v1/messages/conversation/42/7"
    assert seen[0].url.params["productId"] == "5"


@pytest.mark.asyncio
async def test_mark_unread_read_only_marks_incoming_unread():
    patched: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, json=THREAD)
        message_id = request.url.path.split("/")[-2]
        patched.append(message_id)
        return httpx.Response(200, json={"id": message_id, "read": True})

    async with _history(handler) as history:
        report = await history.mark_unread_read(42, 7)

    assert sorted(patched) == ["m1", "m4"]
    assert sorted(report.marked) == ["m1", "m4"]
    assert report.ok is True


@pytest.mark.asyncio
async def test_mark_unread_read_reports_partial_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, content=json.dumps(THREAD))
        if "m4" in request.url.path:
            return httpx.Response(503, json={"detail": "Message store unavailable"})
        return httpx.Response(200, json={"read": True})

    async with _history(handler) as history:
        report = await history.mark_unread_read(42, 7)

    assert report.marked == ["m1"]
    assert list(report.failed) == ["m4"]
    assert report.ok is False
