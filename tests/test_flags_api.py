"""
Tests for the feature flag endpoints.
"""

import pytest
from httpx import AsyncClient

from estate_api.models.user import User


async def create_flag(client: AsyncClient, headers: dict, **overrides) -> dict:
    body = {
        "key": "beta-search",
        "name": "Beta Search",
        "description": "New search ranking",
        "enabled": True,
        "targeting": {"percentage": 50},
        **overrides,
    }
    response = await client.post("/api/flags", headers=headers, json=body)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_create_flag_as_admin(
    client: AsyncClient,
    admin_user: User,
    admin_auth_headers: dict,
):
    data = await create_flag(client, admin_auth_headers)

    assert data["key"] == "beta-search"
    assert data["enabled"] is True
    assert data["targeting"] == {
        "userIds": [],
        "emails": [],
        "roles": [],
        "percentage": 50,
    }
    assert data["createdBy"] == str(admin_user.id)
    assert data["updatedBy"] == str(admin_user.id)
    assert data["lastToggledAt"] is None


@pytest.mark.asyncio
async def test_create_flag_normalizes_key(client: AsyncClient, admin_auth_headers: dict):
    data = await create_flag(client, admin_auth_headers, key="  Beta-Search ")
    assert data["key"] == "beta-search"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"key": "bad key!"},
        {"targeting": {"percentage": 101}},
        {"targeting": {"percentage": -1}},
        {"targeting": {"roles": ["superuser"]}},
        {"description": ""},
    ],
)
async def test_create_flag_validation(client: AsyncClient, admin_auth_headers: dict, overrides):
    body = {
        "key": "beta-search",
        "name": "Beta Search",
        "description": "New search ranking",
        **overrides,
    }
    response = await client.post("/api/flags", headers=admin_auth_headers, json=body)

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["statusCode"] == 400
    assert error["message"]


@pytest.mark.asyncio
async def test_create_duplicate_flag_conflicts(client: AsyncClient, admin_auth_headers: dict):
    await create_flag(client, admin_auth_headers)

    response = await client.post(
        "/api/flags",
        headers=admin_auth_headers,
        json={"key": "beta-search", "name": "Again", "description": "dup"},
    )

    assert response.status_code == 409
    assert "beta-search" in response.json()["error"]["message"]


@pytest.mark.asyncio
async def test_admin_routes_require_admin(client: AsyncClient, auth_headers: dict):
    assert (await client.get("/api/flags")).status_code == 401
    assert (await client.get("/api/flags", headers=auth_headers)).status_code == 403
    response = await client.post(
        "/api/flags",
        headers=auth_headers,
        json={"key": "x", "name": "x", "description": "x"},
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_list_and_get_flag(client: AsyncClient, admin_auth_headers: dict):
    await create_flag(client, admin_auth_headers)
    await create_flag(client, admin_auth_headers, key="advanced-search", enabled=False)

    response = await client.get("/api/flags", headers=admin_auth_headers)
    assert response.status_code == 200
    assert {f["key"] for f in response.json()} == {"beta-search", "advanced-search"}

    response = await client.get("/api/flags/advanced-search", headers=admin_auth_headers)
    assert response.status_code == 200
    assert response.json()["enabled"] is False


@pytest.mark.asyncio
async def test_get_unknown_flag_is_404(client: AsyncClient, admin_auth_headers: dict):
    response = await client.get("/api/flags/missing", headers=admin_auth_headers)

    assert response.status_code == 404
    assert response.json() == {
        "success": False,
        "error": {"message": "Feature flag 'missing' not found", "statusCode": 404},
    }


@pytest.mark.asyncio
async def test_update_merges_targeting(client: AsyncClient, admin_auth_headers: dict):
    await create_flag(
        client,
        admin_auth_headers,
        targeting={"percentage": 50, "emails": ["vip@example.com"]},
    )

    response = await client.put(
        "/api/flags/beta-search",
        headers=admin_auth_headers,
        json={"name": "Beta Search v2", "targeting": {"roles": ["moderator"]}},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Beta Search v2"
    assert data["targeting"] == {
        "userIds": [],
        "emails": ["vip@example.com"],
        "roles": ["moderator"],
        "percentage": 50,
    }
    assert data["lastToggledAt"] is None


@pytest.mark.asyncio
async def test_update_unknown_flag_is_404(client: AsyncClient, admin_auth_headers: dict):
    response = await client.put(
        "/api/flags/missing",
        headers=admin_auth_headers,
        json={"name": "x"},
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_toggle_flag(client: AsyncClient, admin_auth_headers: dict):
    await create_flag(client, admin_auth_headers)

    response = await client.patch("/api/flags/beta-search/toggle", headers=admin_auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["enabled"] is False
    assert data["lastToggledAt"] is not None


@pytest.mark.asyncio
async def test_delete_flag(client: AsyncClient, admin_auth_headers: dict):
    await create_flag(client, admin_auth_headers)

    response = await client.delete("/api/flags/beta-search", headers=admin_auth_headers)
    assert response.status_code == 200
    assert response.json()["key"] == "beta-search"

    response = await client.delete("/api/flags/beta-search", headers=admin_auth_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_whitelist_add_and_remove(
    client: AsyncClient,
    admin_auth_headers: dict,
    test_user: User,
):
    await create_flag(client, admin_auth_headers, targeting={"percentage": 0, "roles": ["admin"]})
    body = {"emails": ["Friend@Example.com"], "userIds": [str(test_user.id)]}

    for _ in range(2):
        response = await client.request(
            "POST", "/api/flags/beta-search/whitelist", headers=admin_auth_headers, json=body
        )
        assert response.status_code == 200

    targeting = response.json()["targeting"]
    assert targeting["emails"] == ["friend@example.com"]
    assert targeting["userIds"] == [str(test_user.id)]
    assert targeting["roles"] == ["admin"]

    response = await client.request(
        "DELETE",
        "/api/flags/beta-search/whitelist",
        headers=admin_auth_headers,
        json={"emails": ["friend@example.com"]},
    )
    assert response.status_code == 200
    targeting = response.json()["targeting"]
    assert targeting["emails"] == []
    assert targeting["userIds"] == [str(test_user.id)]


@pytest.mark.asyncio
async def test_whitelist_rejects_bad_email(client: AsyncClient, admin_auth_headers: dict):
    await create_flag(client, admin_auth_headers)

    response = await client.post(
        "/api/flags/beta-search/whitelist",
        headers=admin_auth_headers,
        json={"emails": ["not-an-email"]},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_check_flag_for_caller(
    client: AsyncClient,
    admin_auth_headers: dict,
    test_user: User,
    auth_headers: dict,
):
    await create_flag(client, admin_auth_headers, targeting={"roles": ["admin"]})

    response = await client.get("/api/flags/beta-search/check", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["enabled"] is False

    await client.post(
        "/api/flags/beta-search/whitelist",
        headers=admin_auth_headers,
        json={"userIds": [str(test_user.id)]},
    )

    response = await client.get("/api/flags/beta-search/check", headers=auth_headers)
    data = response.json()
    assert data["key"] == "beta-search"
    assert data["enabled"] is True
    assert data["reason"] == "User id whitelisted"


@pytest.mark.asyncio
async def test_check_unknown_flag_is_disabled(client: AsyncClient, auth_headers: dict):
    response = await client.get("/api/flags/nope/check", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["enabled"] is False


@pytest.mark.asyncio
async def test_check_requires_authentication(client: AsyncClient):
    response = await client.get("/api/flags/beta-search/check")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_my_flags(
    client: AsyncClient,
    admin_auth_headers: dict,
    user_factory,
    headers_for,
):
    await create_flag(client, admin_auth_headers, key="admin-panel", targeting={"roles": ["admin"]})
    await create_flag(client, admin_auth_headers, key="open-to-all", targeting={})
    await create_flag(client, admin_auth_headers, key="switched-off", enabled=False, targeting={})
    await create_flag(
        client,
        admin_auth_headers,
        key="moderators",
        targeting={"roles": ["moderator"], "emails": ["plain@example.com"]},
    )

    plain = await user_factory.create(email="plain@example.com")
    response = await client.get("/api/flags/my-flags", headers=headers_for(plain))

    assert response.status_code == 200
    assert response.json() == {
        "admin-panel": False,
        "open-to-all": True,
        "switched-off": False,
        "moderators": True,
    }

    response = await client.get("/api/flags/my-flags", headers=admin_auth_headers)
    assert response.json()["admin-panel"] is True
