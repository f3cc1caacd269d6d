"""
HTTP API tests
HTTP 接口测试 - 房间、词库与游戏状态查询
"""

import random
import pytest
from httpx import AsyncClient, ASGITransport
from jose import jwt

from hatgame.core.config import settings
from hatgame.main import app, configure_services

from conftest import create_users


def auth_headers(user_id: str) -> dict:
    token = jwt.encode({"sub": user_id}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client(db_manager, redis_manager):
    configure_services(app, db_manager, redis_manager, random.Random(1), random.Random(2))
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def create_room_via_api(client: AsyncClient, host: str) -> dict:
    response = await client.post("/api/v1/rooms", headers=auth_headers(host))
    assert response.status_code == 201
    return response.json()["room"]


async def add_word_via_api(client: AsyncClient, user_id: str, word_a="Mèo", word_b="Chó", category="động vật"):
    response = await client.post(
        "/api/v1/words",
        json={"word_a": word_a, "word_b": word_b, "category_name": category},
        headers=auth_headers(user_id),
    )
    assert response.status_code == 201
    return response.json()


class TestHealth:
    """测试健康检查"""

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_detailed_health(self, client):
        response = await client.get("/api/v1/health/detailed")
        body = response.json()
        assert body["database"] == "ok"
        assert body["redis"] == "ok"
        assert body["websocket"] == {"connections": 0, "rooms": 0, "failed_sends": 0}

    @pytest.mark.asyncio
    async def test_root(self, client):
        response = await client.get("/")
        assert response.json()["status"] == "running"


class TestAuthentication:
    """测试认证"""

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.post("/api/v1/rooms")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_invalid_token(self, client):
        response = await client.post("/api/v1/rooms", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_token_for_unknown_user(self, client):
        response = await client.post("/api/v1/rooms", headers=auth_headers("ghost-user"))
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_user_id_claim_accepted(self, client, db_manager):
        (user,) = await create_users(db_manager, 1)
        token = jwt.encode({"userId": user}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

        response = await client.post("/api/v1/rooms", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 201


class TestRoomEndpoints:
    """测试房间接口"""

    @pytest.mark.asyncio
    async def test_create_join_and_get(self, client, db_manager):
        host, guest = await create_users(db_manager, 2)
        room = await create_room_via_api(client, host)
        assert room["host_id"] == host
        assert room["status"] == "WAITING"
        assert all("role" not in p for p in room["players"])

        response = await client.post(
            "/api/v1/rooms/join", json={"code": room["code"].lower()}, headers=auth_headers(guest)
        )
        assert response.status_code == 200
        assert response.json()["message"] == "Joined room"

        response = await client.get(f"/api/v1/rooms/{room['id']}", headers=auth_headers(host))
        assert [p["user_id"] for p in response.json()["room"]["players"]] == [host, guest]

    @pytest.mark.asyncio
    async def test_malformed_code(self, client, db_manager):
        (user,) = await create_users(db_manager, 1)
        response = await client.post("/api/v1/rooms/join", json={"code": "AB-12"}, headers=auth_headers(user))
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_room(self, client, db_manager):
        (user,) = await create_users(db_manager, 1)
        response = await client.get("/api/v1/rooms/missing", headers=auth_headers(user))

        assert response.status_code == 404
        assert response.json()["code"] == "room_not_found"

    @pytest.mark.asyncio
    async def test_full_room(self, client, db_manager):
        users = await create_users(db_manager, 9)
        room = await create_room_via_api(client, users[0])
        for user in users[1:8]:
            await client.post("/api/v1/rooms/join", json={"code": room["code"]}, headers=auth_headers(user))

        response = await client.post("/api/v1/rooms/join", json={"code": room["code"]}, headers=auth_headers(users[8]))

        assert response.status_code == 409
        assert response.json()["code"] == "room_full"

    @pytest.mark.asyncio
    async def test_leave_then_close(self, client, db_manager):
        host, guest = await create_users(db_manager, 2)
        room = await create_room_via_api(client, host)
        await client.post("/api/v1/rooms/join", json={"code": room["code"]}, headers=auth_headers(guest))

        response = await client.delete(f"/api/v1/rooms/{room['id']}/leave", headers=auth_headers(host))
        assert response.json()["message"] == "Left room"

        response = await client.get(f"/api/v1/rooms/{room['id']}", headers=auth_headers(guest))
        assert response.json()["room"]["host_id"] == guest

        response = await client.delete(f"/api/v1/rooms/{room['id']}/leave", headers=auth_headers(guest))
        assert response.json()["message"] == "Room closed"

        response = await client.get(f"/api/v1/rooms/{room['id']}", headers=auth_headers(guest))
        assert response.json()["room"]["status"] == "FINISHED"


class TestWordEndpoints:
    """测试词库接口"""

    @pytest.mark.asyncio
    async def test_words_require_auth(self, client):
        response = await client.get("/api/v1/words/categories")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_add_list_and_remove(self, client, db_manager):
        (user,) = await create_users(db_manager, 1)
        headers = auth_headers(user)
        pair = await add_word_via_api(client, user)
        await add_word_via_api(client, user, "bóng đá", "bóng rổ", "thể thao")

        response = await client.get("/api/v1/words/categories", headers=headers)
        categories = {c["name"]: c for c in response.json()["categories"]}
        assert categories["động vật"]["word_pair_count"] == 1

        response = await client.get(
            "/api/v1/words", params={"categoryId": pair["category_id"]}, headers=headers
        )
        body = response.json()
        assert body["total"] == 1
        assert body["pairs"][0]["word_a"] == "Mèo"

        response = await client.delete(f"/api/v1/words/{pair['id']}", headers=headers)
        assert response.json()["message"] == "Word pair removed"

        response = await client.get("/api/v1/words/categories", headers=headers)
        categories = {c["name"]: c for c in response.json()["categories"]}
        assert categories["động vật"]["word_pair_count"] == 0

    @pytest.mark.asyncio
    async def test_identical_words_rejected(self, client, db_manager):
        (user,) = await create_users(db_manager, 1)
        response = await client.post(
            "/api/v1/words",
            json={"word_a": "Mèo", "word_b": " mèo ", "category_name": "động vật"},
            headers=auth_headers(user),
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_remove_unknown_pair(self, client, db_manager):
        (user,) = await create_users(db_manager, 1)
        response = await client.delete("/api/v1/words/missing", headers=auth_headers(user))
        assert response.status_code == 404
        assert response.json()["code"] == "word_pair_not_found"


class TestGameEndpoints:
    """测试游戏状态接口"""

    async def _started_room(self, client, db_manager):
        users = await create_users(db_manager, 4)
        await add_word_via_api(client, users[0])
        room = await create_room_via_api(client, users[0])
        for user in users[1:]:
            await client.post("/api/v1/rooms/join", json={"code": room["code"]}, headers=auth_headers(user))
        await app.state.game_engine.start_game(room["id"], users[0])
        return room, users

    @pytest.mark.asyncio
    async def test_game_not_started(self, client, db_manager):
        (host,) = await create_users(db_manager, 1)
        room = await create_room_via_api(client, host)

        response = await client.get(f"/api/v1/games/{room['id']}", headers=auth_headers(host))

        assert response.status_code == 404
        assert response.json()["code"] == "game_not_found"

    @pytest.mark.asyncio
    async def test_public_state_hides_roles(self, client, db_manager):
        room, users = await self._started_room(client, db_manager)

        response = await client.get(f"/api/v1/games/{room['id']}", headers=auth_headers(users[1]))

        assert response.status_code == 200
        body = response.json()
        assert body["phase"] == "HINTING"
        assert body["round_number"] == 1
        assert len(body["turn_order"]) == 4
        assert "word" not in body and "roles" not in body

    @pytest.mark.asyncio
    async def test_own_view(self, client, db_manager):
        room, users = await self._started_room(client, db_manager)

        for user in users:
            response = await client.get(f"/api/v1/games/{room['id']}/me", headers=auth_headers(user))
            body = response.json()
            assert body["role"] in ("CIVILIAN", "BLACK_HAT")
            assert body["word"] == ("Mèo" if body["role"] == "CIVILIAN" else "Chó")

    @pytest.mark.asyncio
    async def test_outsider_has_no_view(self, client, db_manager):
        room, _ = await self._started_room(client, db_manager)
        (outsider,) = await create_users(db_manager, 1)

        response = await client.get(f"/api/v1/games/{room['id']}/me", headers=auth_headers(outsider))

        assert response.status_code == 404
        assert response.json()["code"] == "player_not_found"

    @pytest.mark.asyncio
    async def test_history(self, client, db_manager):
        room, users = await self._started_room(client, db_manager)

        response = await client.get(f"/api/v1/games/{room['id']}/history", headers=auth_headers(users[0]))

        (round_one,) = response.json()
        assert round_one["round_number"] == 1
        assert round_one["phase"] == "HINTING"
        assert round_one["clues"] == []

    @pytest.mark.asyncio
    async def test_leave_mid_game_updates_round(self, client, db_manager):
        room, users = await self._started_room(client, db_manager)
        for user in users[1:]:
            view = (await client.get(f"/api/v1/games/{room['id']}/me", headers=auth_headers(user))).json()
            if view["role"] == "CIVILIAN":
                break

        response = await client.delete(f"/api/v1/rooms/{room['id']}/leave", headers=auth_headers(user))
        assert response.json()["message"] == "Left room"

        response = await client.get(f"/api/v1/games/{room['id']}", headers=auth_headers(users[0]))
        body = response.json()
        assert body["departed_players"] == [view["player_id"]]
        assert body["phase"] == "HINTING"
