"""Upload Routes — client registration/report and the worker claim/finalize surface.

Invariants:
    - Registered files start in CLIENT_UPLOAD_IN_PROGRESS, owned by the actor
    - Worker endpoints require MANAGE_UPLOADS (403 otherwise)
    - Sizes and path ids beyond BIGINT -> 400 VALIDATION_ERROR, never a store error
    - Empty queue claim -> 204; finalize unknown id -> 404, unclaimed file -> 409
    - Successful finalize returns status and url together
"""

import pytest

from foodsharing.core.domain_types import FileStatus

URL = "https://storage.example.org/files/crate.jpg"


@pytest.fixture
def register(client, auth):
    async def _register(owner, name="crate.jpg", succeeded: bool | None = True):
        res = await client.post(
            "/api/v1/files",
            json={"type": "image", "content_type": "image/jpeg", "name": name, "size": 512},
            headers=auth(owner),
        )
        assert res.status_code == 201, res.text
        file = res.json()
        if succeeded is not None:
            res = await client.post(
                f"/api/v1/files/{file['id']}/client-result",
                json={"succeeded": succeeded}, headers=auth(owner),
            )
            assert res.status_code == 200, res.text
            file = res.json()
        return file

    return _register


# ─── Client half ─────────────────────────────────────────────────


async def test_register_upload(client, member, register):
    file = await register(member, succeeded=None)
    assert file["status"] == FileStatus.CLIENT_UPLOAD_IN_PROGRESS
    assert file["user_id"] == member.id
    assert file["type"] == "image"
    assert file["url"] is None


async def test_register_rejects_negative_size(client, member, auth):
    res = await client.post(
        "/api/v1/files",
        json={"content_type": "text/plain", "name": "a.txt", "size": -1},
        headers=auth(member),
    )
    assert res.status_code == 400
    error = res.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert [d["field"] for d in error["details"]] == ["body.size"]


async def test_register_rejects_size_beyond_bigint(client, member, auth):
    res = await client.post(
        "/api/v1/files",
        json={"content_type": "video/mp4", "name": "huge.mp4", "size": 2**70},
        headers=auth(member),
    )
    assert res.status_code == 400
    error = res.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert [d["field"] for d in error["details"]] == ["body.size"]


async def test_file_id_beyond_bigint_is_400(client, member, auth):
    res = await client.get(f"/api/v1/files/{2**63}", headers=auth(member))
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_client_report(client, member, register):
    file = await register(member)
    assert file["status"] == FileStatus.UPLOADED_BY_CLIENT


async def test_client_report_by_stranger_is_403(client, member, operator, register, auth):
    file = await register(member, succeeded=None)
    res = await client.post(
        f"/api/v1/files/{file['id']}/client-result",
        json={"succeeded": True}, headers=auth(operator),
    )
    assert res.status_code == 403


async def test_client_report_twice_is_409(client, member, register, auth):
    file = await register(member)
    res = await client.post(
        f"/api/v1/files/{file['id']}/client-result",
        json={"succeeded": False}, headers=auth(member),
    )
    assert res.status_code == 409
    assert res.json()["error"]["code"] == "INVALID_TRANSITION"


async def test_file_visible_to_owner_and_operator_only(
    client, member, operator, make_user, register, auth,
):
    file = await register(member)
    stranger = await make_user("Stranger")
    url = f"/api/v1/files/{file['id']}"

    assert (await client.get(url, headers=auth(member))).status_code == 200
    assert (await client.get(url, headers=auth(operator))).status_code == 200
    assert (await client.get(url, headers=auth(stranger))).status_code == 403


# ─── Worker half ─────────────────────────────────────────────────


async def test_full_lifecycle(client, member, operator, register, auth):
    file = await register(member)

    res = await client.post("/api/v1/uploads/claim", headers=auth(operator))
    assert res.status_code == 200
    claimed = res.json()
    assert claimed["id"] == file["id"]
    assert claimed["status"] == FileStatus.STORAGE_UPLOAD_IN_PROGRESS

    res = await client.post(
        f"/api/v1/uploads/{file['id']}/finalize",
        json={"succeeded": True, "url": URL}, headers=auth(operator),
    )
    assert res.status_code == 200
    done = res.json()
    assert (done["status"], done["url"]) == (FileStatus.UPLOADED_TO_STORAGE, URL)

    res = await client.post("/api/v1/uploads/claim", headers=auth(operator))
    assert res.status_code == 204


async def test_claim_requires_manage_uploads(client, member, register, auth):
    await register(member)
    res = await client.post("/api/v1/uploads/claim", headers=auth(member))
    assert res.status_code == 403


async def test_finalize_unclaimed_is_409(client, member, operator, register, auth):
    file = await register(member)
    res = await client.post(
        f"/api/v1/uploads/{file['id']}/finalize",
        json={"succeeded": True, "url": URL}, headers=auth(operator),
    )
    assert res.status_code == 409


async def test_finalize_unknown_is_404(client, operator, auth):
    res = await client.post(
        "/api/v1/uploads/9999/finalize",
        json={"succeeded": False, "reason": "lost"}, headers=auth(operator),
    )
    assert res.status_code == 404


async def test_finalize_success_without_url_is_400(client, operator, auth):
    res = await client.post(
        "/api/v1/uploads/1/finalize",
        json={"succeeded": True}, headers=auth(operator),
    )
    assert res.status_code == 400


async def test_failed_upload_requeued(client, member, operator, register, auth):
    file = await register(member)
    await client.post("/api/v1/uploads/claim", headers=auth(operator))
    res = await client.post(
        f"/api/v1/uploads/{file['id']}/finalize",
        json={"succeeded": False, "reason": "timeout"}, headers=auth(operator),
    )
    assert res.json()["status"] == FileStatus.STORAGE_UPLOAD_ERROR

    res = await client.post(f"/api/v1/uploads/{file['id']}/requeue", headers=auth(operator))

    assert res.status_code == 200
    assert res.json()["status"] == FileStatus.UPLOADED_BY_CLIENT


async def test_reclaim_with_zero_lease(client, member, operator, register, auth):
    file = await register(member)
    await client.post("/api/v1/uploads/claim", headers=auth(operator))

    res = await client.post(
        "/api/v1/uploads/reclaim", params={"lease_seconds": 0}, headers=auth(operator),
    )

    assert res.status_code == 200
    assert res.json()["reclaimed"] == [file["id"]]


async def test_stats(client, member, operator, register, auth):
    await register(member, "a.jpg")
    await register(member, "b.jpg", succeeded=None)
    await client.post("/api/v1/uploads/claim", headers=auth(operator))

    res = await client.get("/api/v1/uploads/stats", headers=auth(operator))

    assert res.status_code == 200
    stats = res.json()
    assert stats["storage_upload_in_progress"] == 1
    assert stats["client_upload_in_progress"] == 1
    assert stats["uploaded_to_storage"] == 0
