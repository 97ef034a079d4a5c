"""Integration tests for product saves, image cleanup and the orphan sweep."""

from datetime import timedelta
from decimal import Decimal

import pytest
from libs.common.datetime_utils import utc_now
from services.catalog_service.models import Product, ProductVariant
from services.catalog_service.tasks import (
    referenced_product_urls,
    sweep_orphaned_objects,
)
from sqlalchemy import func, select
from tests.factories import ProductFactory


def _payload(**overrides):
    payload = {
        "name": "Capulana",
        "description": "Tecido tradicional",
        "category": "Moda",
        "specifications": [{"name": "Material", "value": "Algodão"}],
        "variants": [{"name": "Único", "price": "350.00", "stock": 10}],
        "image_urls": [],
    }
    payload.update(overrides)
    return payload


@pytest.mark.integration
@pytest.mark.asyncio
async def test_create_product_with_variants_and_images(
    catalog_client, products_storage, store
):
    front = products_storage.put(f"{store.seller_id}/1-a.jpg")
    back = products_storage.put(f"{store.seller_id}/2-b.jpg")

    response = await catalog_client.put(
        "/products",
        json=_payload(
            variants=[
                {"name": "Azul", "price": "350.00", "stock": 3},
                {"name": "Verde", "price": "375.50", "stock": 0},
            ],
            image_urls=[front, back],
        ),
    )

    assert response.status_code == 201
    data = response.json()
    assert {v["name"] for v in data["variants"]} == {"Azul", "Verde"}
    assert [i["image_url"] for i in sorted(data["images"], key=lambda i: i["sort_order"])] == [
        front,
        back,
    ]
    assert data["image_url"] == front


@pytest.mark.integration
@pytest.mark.asyncio
async def test_save_replaces_state_and_deletes_removed_files(
    catalog_client, db_session, products_storage, store
):
    keep = products_storage.put(f"{store.seller_id}/1-keep.jpg")
    drop = products_storage.put(f"{store.seller_id}/2-drop.jpg")
    product = ProductFactory.create(store_id=store.id, image_urls=[keep, drop])
    db_session.add(product)
    await db_session.commit()
    variant_id = str(product.variants[0].id)

    response = await catalog_client.put(
        f"/products/{product.id}",
        json=_payload(
            name="Capulana Premium",
            variants=[
                {"id": variant_id, "name": "Único", "price": "400.00", "stock": 5},
                {"name": "Duplo", "price": "750.00", "stock": 2},
            ],
            image_urls=[keep],
        ),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Capulana Premium"
    assert [i["image_url"] for i in data["images"]] == [keep]
    updated = next(v for v in data["variants"] if v["id"] == variant_id)
    assert Decimal(updated["price"]) == Decimal("400.00")
    assert len(data["variants"]) == 2
    assert products_storage.removed == [f"{store.seller_id}/2-drop.jpg"]
    assert f"{store.seller_id}/1-keep.jpg" in products_storage.objects


@pytest.mark.integration
@pytest.mark.asyncio
async def test_unknown_variant_rolls_back_whole_save(
    catalog_client, db_session, products_storage, store
):
    product = ProductFactory.create(store_id=store.id)
    db_session.add(product)
    await db_session.commit()

    response = await catalog_client.put(
        f"/products/{product.id}",
        json=_payload(
            name="Renamed",
            variants=[
                {
                    "id": "00000000-0000-4000-8000-000000000000",
                    "name": "Ghost",
                    "price": "1.00",
                    "stock": 1,
                }
            ],
        ),
    )

    assert response.status_code == 400
    stored = await db_session.get(Product, product.id, populate_existing=True)
    assert stored.name == "Capulana"
    variants = (
        await db_session.execute(
            select(func.count(ProductVariant.id)).where(ProductVariant.product_id == product.id)
        )
    ).scalar_one()
    assert variants == 1
    assert products_storage.removed == []


@pytest.mark.integration
@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [
        {"variants": []},
        {"variants": [{"name": "Zero", "price": "0", "stock": 1}]},
        {"variants": [{"name": "Neg", "price": "10.00", "stock": -1}]},
        {"image_urls": ["https://x/a.jpg", "https://x/a.jpg"]},
    ],
)
async def test_invalid_product_payloads(catalog_client, store, overrides):
    response = await catalog_client.put("/products", json=_payload(**overrides))

    assert response.status_code == 422


@pytest.mark.integration
@pytest.mark.asyncio
async def test_delete_product_removes_files(
    catalog_client, db_session, products_storage, store
):
    url = products_storage.put(f"{store.seller_id}/1-a.jpg")
    product = ProductFactory.create(store_id=store.id, image_urls=[url])
    db_session.add(product)
    await db_session.commit()

    response = await catalog_client.delete(f"/products/{product.id}")

    assert response.status_code == 204
    assert products_storage.objects == {}
    missing = await catalog_client.get(f"/products/{product.id}")
    assert missing.status_code == 404


@pytest.mark.integration
@pytest.mark.asyncio
async def test_list_products_by_category(catalog_client, db_session, store):
    db_session.add(ProductFactory.create(store_id=store.id, category="Moda"))
    db_session.add(ProductFactory.create(store_id=store.id, name="Cesto", category="Casa"))
    await db_session.commit()

    response = await catalog_client.get("/products", params={"category": "Casa"})

    assert response.status_code == 200
    assert [p["name"] for p in response.json()] == ["Cesto"]


@pytest.mark.integration
@pytest.mark.asyncio
async def test_upload_image_goes_to_seller_folder(catalog_client, products_storage, seller):
    response = await catalog_client.post(
        "/products/images",
        files={"file": ("foto.png", b"\x89PNG\r\n", "image/png")},
    )

    assert response.status_code == 201
    url = response.json()["url"]
    path = products_storage.path_from_url(url)
    assert path.startswith(f"{seller.user_id}/")
    assert path.endswith(".png")
    assert path in products_storage.objects


@pytest.mark.integration
@pytest.mark.asyncio
async def test_upload_rejects_non_images(catalog_client):
    response = await catalog_client.post(
        "/products/images",
        files={"file": ("notes.txt", b"hello", "text/plain")},
    )

    assert response.status_code == 400


@pytest.mark.integration
@pytest.mark.asyncio
async def test_sweep_removes_only_old_unreferenced_objects(
    db_session, products_storage, store
):
    old = utc_now() - timedelta(days=2)
    referenced = products_storage.put(f"{store.seller_id}/1-used.jpg", created_at=old)
    detailed = products_storage.put(f"{store.seller_id}/2-detail.jpg", created_at=old)
    products_storage.put(f"{store.seller_id}/3-orphan.jpg", created_at=old)
    products_storage.put(f"{store.seller_id}/4-fresh.jpg")

    product = ProductFactory.create(
        store_id=store.id,
        image_urls=[referenced],
        detailed_images=[{"url": detailed, "sort_order": 0}],
    )
    db_session.add(product)
    await db_session.commit()

    urls = await referenced_product_urls(db_session)
    scanned, removed = await sweep_orphaned_objects(products_storage, urls, 3600)

    assert (scanned, removed) == (4, 1)
    assert products_storage.removed == [f"{store.seller_id}/3-orphan.jpg"]
