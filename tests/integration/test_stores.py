"""Integration tests for the seller store and profile endpoints."""

import pytest
from tests.factories import ProfileFactory


@pytest.mark.integration
@pytest.mark.asyncio
async def test_first_visit_creates_default_store(stores_client, seller):
    response = await stores_client.get("/stores/me")

    assert response.status_code == 200
    data = response.json()
    assert data["seller_id"] == seller.user_id
    assert data["name"] == "Ana Seller Store"

    again = await stores_client.get("/stores/me")
    assert again.json()["id"] == data["id"]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_default_store_name_prefers_profile(stores_client, db_session, seller):
    db_session.add(ProfileFactory.create(id=seller.user_id, first_name="Beatriz"))
    await db_session.commit()

    response = await stores_client.get("/stores/me")

    assert response.json()["name"] == "Beatriz Seller Store"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_update_store(stores_client, store):
    response = await stores_client.patch(
        "/stores/me", json={"name": "Loja da Ana", "description": "Capulanas"}
    )

    assert response.status_code == 200
    assert response.json()["name"] == "Loja da Ana"
    assert response.json()["description"] == "Capulanas"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_logo_upload_replaces_previous(stores_client, logos_storage, store):
    first = await stores_client.post(
        "/stores/me/logo", files={"file": ("logo.png", b"png", "image/png")}
    )
    second = await stores_client.post(
        "/stores/me/logo", files={"file": ("logo2.png", b"png", "image/png")}
    )

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["logo_url"] != first.json()["logo_url"]
    assert logos_storage.removed == [logos_storage.path_from_url(first.json()["logo_url"])]
    assert len(logos_storage.objects) == 1


@pytest.mark.integration
@pytest.mark.asyncio
async def test_failed_logo_upload_keeps_store(stores_client, logos_storage, store):
    logos_storage.fail_uploads = True

    response = await stores_client.post(
        "/stores/me/logo", files={"file": ("logo.png", b"png", "image/png")}
    )

    assert response.status_code == 400
    assert (await stores_client.get("/stores/me")).json()["logo_url"] is None


@pytest.mark.integration
@pytest.mark.asyncio
async def test_profile_seeded_from_token_then_saved(stores_client, seller):
    seeded = await stores_client.get("/profiles/me")
    assert seeded.json() == {
        "id": seller.user_id,
        "first_name": "Ana",
        "last_name": None,
        "avatar_url": None,
    }

    updated = await stores_client.patch("/profiles/me", json={"last_name": "Machava"})

    assert updated.status_code == 200
    assert updated.json()["first_name"] == "Ana"
    assert updated.json()["last_name"] == "Machava"
