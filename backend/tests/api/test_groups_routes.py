"""Group Routes — capability guard, CRUD, membership, and effective permissions.

Invariants:
    - Missing or malformed X-User-Id -> 401; unknown actor -> 404; missing capability -> 403
    - Path ids outside 1..BIGINT max -> 400 before any store access
    - Membership PUT is idempotent; DELETE of a missing pair is not an error
    - Unknown capability names -> 400
"""

import pytest

from foodsharing.core.permissions import Permission


async def create_group(client, actor, headers, name="Volunteers", permissions=None):
    res = await client.post(
        "/api/v1/groups",
        json={"name": name, "permissions": permissions or ["READ_ACT", "READ_COMPANY"]},
        headers=headers(actor),
    )
    assert res.status_code == 201, res.text
    return res.json()


# ─── Guard ───────────────────────────────────────────────────────


async def test_missing_actor_header_is_401(client):
    res = await client.get("/api/v1/groups")
    assert res.status_code == 401
    assert res.json()["error"]["code"] == "UNAUTHORIZED"


async def test_non_numeric_actor_header_is_401(client):
    res = await client.get("/api/v1/groups", headers={"X-User-Id": "alice"})
    assert res.status_code == 401


@pytest.mark.parametrize("value", [
    b"\xb2",               # latin-1 superscript two: isdigit() but not int()
    b"0",
    str(2**63).encode(),
    b"9" * 5000,
])
async def test_malformed_actor_header_is_401(client, value):
    res = await client.get("/api/v1/groups", headers={"X-User-Id": value})
    assert res.status_code == 401
    assert res.json()["error"]["code"] == "UNAUTHORIZED"


async def test_unknown_route_uses_error_envelope(client):
    res = await client.get("/api/v1/nowhere")
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "NOT_FOUND"


async def test_unknown_actor_is_404(client):
    res = await client.get("/api/v1/groups", headers={"X-User-Id": "9999"})
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "RESOURCE_NOT_FOUND"


async def test_member_without_capability_is_403(client, member, auth):
    res = await client.post(
        "/api/v1/groups", json={"name": "Sneaky"}, headers=auth(member),
    )
    assert res.status_code == 403
    body = res.json()["error"]
    assert body["code"] == "FORBIDDEN"
    assert body["context"]["user_id"] == member.id


async def test_capability_granted_through_group(client, make_user, make_group, auth):
    creator = await make_user("Creator")
    await make_group("Group creators", Permission.CREATE_GROUP, creator)
    group = await create_group(client, creator, auth)
    assert group["permissions"] == ["READ_ACT", "READ_COMPANY"]


# ─── CRUD ────────────────────────────────────────────────────────


async def test_create_returns_names_and_bits(client, admin, auth):
    group = await create_group(client, admin, auth)
    assert group["name"] == "Volunteers"
    assert group["permission_bits"] == int(Permission.READ_ACT | Permission.READ_COMPANY)
    assert group["updated_at"] is None


async def test_create_rejects_unknown_capability(client, admin, auth):
    res = await client.post(
        "/api/v1/groups",
        json={"name": "Pilots", "permissions": ["FLY_PLANE"]},
        headers=auth(admin),
    )
    assert res.status_code == 400


async def test_list_filtered_by_permission(client, admin, auth):
    await create_group(client, admin, auth, "Volunteers", ["READ_ACT"])
    auditors = await create_group(client, admin, auth, "Auditors", ["EDIT_COMPANY"])

    res = await client.get(
        "/api/v1/groups", params={"permission": ["edit_company"]}, headers=auth(admin),
    )

    assert res.status_code == 200
    assert [g["id"] for g in res.json()] == [auditors["id"]]


async def test_list_filter_unknown_capability_is_400(client, admin, auth):
    res = await client.get(
        "/api/v1/groups", params={"permission": ["FLY_PLANE"]}, headers=auth(admin),
    )
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_list_filtered_by_name(client, admin, auth):
    await create_group(client, admin, auth, "Berlin Volunteers")
    await create_group(client, admin, auth, "Auditors")

    res = await client.get(
        "/api/v1/groups", params={"name": "%Volunteers"}, headers=auth(admin),
    )

    assert [g["name"] for g in res.json()] == ["Berlin Volunteers"]


async def test_update_group(client, admin, auth):
    group = await create_group(client, admin, auth)

    res = await client.patch(
        f"/api/v1/groups/{group['id']}",
        json={"permissions": ["EDIT_ACT"]},
        headers=auth(admin),
    )

    assert res.status_code == 200
    body = res.json()
    assert body["permissions"] == ["EDIT_ACT"]
    assert body["name"] == "Volunteers"
    assert body["updated_at"] is not None


async def test_update_missing_group_is_404(client, admin, auth):
    res = await client.patch(
        "/api/v1/groups/9999", json={"name": "Ghosts"}, headers=auth(admin),
    )
    assert res.status_code == 404


@pytest.mark.parametrize(("method", "path"), [
    ("GET", f"/api/v1/groups/{2**63}"),
    ("GET", "/api/v1/groups/0"),
    ("PUT", "/api/v1/groups/1/members/-5"),
])
async def test_out_of_range_path_id_is_400(client, admin, auth, method, path):
    res = await client.request(method, path, headers=auth(admin))
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_delete_group(client, admin, auth):
    group = await create_group(client, admin, auth)

    res = await client.delete(f"/api/v1/groups/{group['id']}", headers=auth(admin))
    assert res.status_code == 204

    res = await client.get(f"/api/v1/groups/{group['id']}", headers=auth(admin))
    assert res.status_code == 404


# ─── Membership ──────────────────────────────────────────────────


async def test_add_member_twice_is_idempotent(client, admin, member, auth):
    group = await create_group(client, admin, auth)
    url = f"/api/v1/groups/{group['id']}/members/{member.id}"

    first = await client.put(url, headers=auth(admin))
    second = await client.put(url, headers=auth(admin))

    assert first.json()["added"] is True
    assert second.json()["added"] is False


async def test_add_unknown_user_is_404(client, admin, auth):
    group = await create_group(client, admin, auth)
    res = await client.put(
        f"/api/v1/groups/{group['id']}/members/9999", headers=auth(admin),
    )
    assert res.status_code == 404


async def test_remove_missing_pair_is_not_an_error(client, admin, member, auth):
    group = await create_group(client, admin, auth)
    res = await client.delete(
        f"/api/v1/groups/{group['id']}/members/{member.id}", headers=auth(admin),
    )
    assert res.status_code == 200
    assert res.json()["removed"] is False


async def test_effective_permissions(client, admin, member, auth):
    volunteers = await create_group(client, admin, auth, "Volunteers", ["READ_ACT", "READ_COMPANY"])
    auditors = await create_group(client, admin, auth, "Auditors", ["READ_COMPANY", "EDIT_COMPANY"])
    for group in (volunteers, auditors):
        await client.put(
            f"/api/v1/groups/{group['id']}/members/{member.id}", headers=auth(admin),
        )

    res = await client.get(f"/api/v1/users/{member.id}/permissions", headers=auth(admin))

    assert res.status_code == 200
    body = res.json()
    assert body["permissions"] == ["READ_ACT", "READ_COMPANY", "EDIT_COMPANY"]
    assert body["is_admin"] is False


async def test_revoked_membership_applies_to_next_request(client, admin, member, auth):
    group = await create_group(client, admin, auth, "Readers", ["READ_GROUP"])
    url = f"/api/v1/groups/{group['id']}/members/{member.id}"
    await client.put(url, headers=auth(admin))

    assert (await client.get("/api/v1/groups", headers=auth(member))).status_code == 200

    await client.delete(url, headers=auth(admin))
    assert (await client.get("/api/v1/groups", headers=auth(member))).status_code == 403
