"""
Tests de los endpoints de productos, incluido el escenario completo de
consistencia del cache al mover un producto de categoría.
"""
from sqlalchemy import func, select

from core.errors import BadRequestError
from models import OrderItem, Product, ProductImage
from conftest import make_image_bytes

API = "/api/v1"


def product_form(**overrides):
    data = {
        "name": "Blue Sapphires",
        "description": "Zafiros azules de Ceilán",
        "price": "120.00",
        "unit": "3",
    }
    data.update(overrides)
    return data


def count(db, query):
    db.expire_all()
    return db.execute(query).scalar_one()


class TestCreateProduct:
    def test_crear_producto_con_imagenes(self, client, admin_headers, make_category, image_file, context, fake_redis):
        gemstones = make_category("Gemstones")
        client.get(f"{API}/products")
        client.get(f"{API}/category/gemstones")
        client.get(f"{API}/category/all")

        response = client.post(
            f"{API}/product",
            data=product_form(category_id=gemstones.id),
            files=[("files", image_file), ("files", ("b.jpg", make_image_bytes(fmt="JPEG"), "image/jpeg"))],
            headers=admin_headers
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["slug"] == "blue-sapphires"
        assert data["code"].startswith("PROD-")
        assert data["price"] == "120.00"
        assert data["unit"] == 3
        assert data["category"]["slug"] == "gemstones"
        assert len(data["images"]) == 2
        for image in data["images"]:
            assert image["image_url"].endswith(".webp")
            assert context.storage._path_for(image["public_id"]).exists()

        assert fake_redis.cached() == set()
        assert client.get(f"{API}/category/gemstones").json()["total"] == 1

    def test_requiere_imagen(self, client, admin_headers):
        response = client.post(f"{API}/product", data=product_form(), headers=admin_headers)
        assert response.status_code == 400

    def test_nombre_duplicado(self, client, admin_headers, make_product, image_file):
        make_product("Blue Sapphires")
        response = client.post(
            f"{API}/product", data=product_form(), files=[("files", image_file)], headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json()["error"] == "DUPLICATE_SLUG"

    def test_categoria_inexistente(self, client, admin_headers, image_file):
        response = client.post(
            f"{API}/product",
            data=product_form(category_id="no-existe"),
            files=[("files", image_file)],
            headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json()["error"] == "CATEGORY_NOT_FOUND"

    def test_precio_invalido(self, client, admin_headers, image_file):
        response = client.post(
            f"{API}/product", data=product_form(price="0"), files=[("files", image_file)], headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_imagen_invalida_no_crea_producto(self, client, admin_headers, db):
        response = client.post(
            f"{API}/product",
            data=product_form(),
            files=[("files", ("x.png", b"no es imagen", "image/png"))],
            headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_IMAGE"
        assert count(db, select(func.count()).select_from(Product)) == 0

    def test_sin_token(self, client, image_file):
        response = client.post(f"{API}/product", data=product_form(), files=[("files", image_file)])
        assert response.status_code == 401


class TestReadProduct:
    def test_producto_inexistente_no_se_cachea(self, client, fake_redis):
        response = client.get(f"{API}/product/no-existe")
        assert response.status_code == 404
        assert response.json() == {
            "success": False,
            "status_code": 404,
            "message": "Producto no encontrado",
            "error": "PRODUCT_NOT_FOUND"
        }
        assert fake_redis.store == {}

    def test_listado_vacio(self, client):
        response = client.get(f"{API}/products")
        assert response.status_code == 200
        assert response.json()["data"] == []


class TestUpdateProduct:
    def test_mover_blue_sapphires_a_rings(self, client, admin_headers, make_category, make_product, fake_redis):
        gemstones = make_category("Gemstones")
        rings = make_category("Rings")
        pearls = make_category("Pearls")
        make_product("Blue Sapphires", gemstones)

        # Calentar el cache
        gem_page = client.get(f"{API}/category/gemstones").json()
        ring_page = client.get(f"{API}/category/rings").json()
        client.get(f"{API}/category/pearls")
        assert [p["slug"] for p in gem_page["data"]["products"]] == ["blue-sapphires"]
        assert ring_page["data"]["products"] == []

        response = client.patch(
            f"{API}/product/blue-sapphires", data={"category_id": rings.id}, headers=admin_headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["category"]["slug"] == "rings"

        assert f"category:{pearls.slug}:page:1:limit:12" in fake_redis.store
        gem_page = client.get(f"{API}/category/gemstones").json()
        ring_page = client.get(f"{API}/category/rings").json()
        assert gem_page["data"]["products"] == []
        assert [p["slug"] for p in ring_page["data"]["products"]] == ["blue-sapphires"]
        detail = client.get(f"{API}/product/blue-sapphires").json()["data"]
        assert detail["category"]["id"] == rings.id

    def test_renombrar_cambia_slug(self, client, admin_headers, make_product, fake_redis):
        make_product("Ruby")
        client.get(f"{API}/product/ruby")

        response = client.patch(f"{API}/product/ruby", data={"name": "Star Ruby", "price": "99.90"}, headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"]["slug"] == "star-ruby"
        assert "product:ruby" not in fake_redis.store
        assert client.get(f"{API}/product/ruby").status_code == 404
        assert client.get(f"{API}/product/star-ruby").json()["data"]["price"] == "99.90"

    def test_renombrar_a_nombre_existente(self, client, admin_headers, make_product):
        make_product("Ruby")
        make_product("Emerald")
        response = client.patch(f"{API}/product/ruby", data={"name": "Emerald"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "DUPLICATE_SLUG"

    def test_quitar_categoria(self, client, admin_headers, make_category, make_product):
        rings = make_category("Rings")
        make_product("Ruby Ring", rings)
        response = client.patch(f"{API}/product/ruby-ring", data={"clear_category": "true"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"]["category_id"] is None
        assert client.get(f"{API}/category/rings").json()["total"] == 0

    def test_cambiar_imagenes(self, client, admin_headers, db, make_product, image_file, context):
        ruby = make_product("Ruby", images=2)
        old_images = db.execute(
            select(ProductImage).where(ProductImage.product_id == ruby.id).order_by(ProductImage.public_id)
        ).scalars().all()

        response = client.patch(
            f"{API}/product/ruby",
            data={"deleted_image_ids": [old_images[0].id]},
            files=[("files", image_file)],
            headers=admin_headers
        )

        assert response.status_code == 200
        data = response.json()["data"]
        public_ids = {image["public_id"] for image in data["images"]}
        assert old_images[0].public_id not in public_ids
        assert old_images[1].public_id in public_ids
        assert len(data["new_images"]) == 1
        assert context.storage._path_for(data["new_images"][0]["public_id"]).exists()

    def images_of(self, db, product):
        db.expire_all()
        return db.execute(
            select(ProductImage).where(ProductImage.product_id == product.id).order_by(ProductImage.public_id)
        ).scalars().all()

    def test_archivo_se_borra_del_storage_despues_del_commit(self, client, admin_headers, db, make_product, context):
        ruby = make_product("Ruby", images=2)
        image = self.images_of(db, ruby)[0]
        image_id, public_id = image.id, image.public_id
        context.storage._write(public_id, b"webp")

        response = client.patch(f"{API}/product/ruby", data={"deleted_image_ids": [image_id]}, headers=admin_headers)

        assert response.status_code == 200
        assert not context.storage._path_for(public_id).exists()
        assert image_id not in [img.id for img in self.images_of(db, ruby)]

    def test_upload_invalido_no_borra_imagenes(self, client, admin_headers, db, make_product, context):
        ruby = make_product("Ruby")
        image = self.images_of(db, ruby)[0]
        context.storage._write(image.public_id, b"webp")

        response = client.patch(
            f"{API}/product/ruby",
            data={"deleted_image_ids": [image.id]},
            files=[("files", ("notes.txt", b"no es una imagen", "text/plain"))],
            headers=admin_headers
        )

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_IMAGE"
        assert [img.public_id for img in self.images_of(db, ruby)] == [image.public_id]
        assert context.storage._path_for(image.public_id).exists()

    def test_nombre_duplicado_no_borra_imagenes(self, client, admin_headers, db, make_product, context):
        ruby = make_product("Ruby")
        make_product("Emerald")
        image = self.images_of(db, ruby)[0]
        context.storage._write(image.public_id, b"webp")

        response = client.patch(
            f"{API}/product/ruby",
            data={"name": "Emerald", "deleted_image_ids": [image.id]},
            headers=admin_headers
        )

        assert response.status_code == 400
        assert [img.public_id for img in self.images_of(db, ruby)] == [image.public_id]
        assert context.storage._path_for(image.public_id).exists()

    def test_fallo_del_storage_despues_del_commit_no_revierte(self, client, admin_headers, db, make_product, context, monkeypatch):
        ruby = make_product("Ruby", images=2)
        image = self.images_of(db, ruby)[0]
        image_id = image.id

        async def failing_delete(public_id):
            raise BadRequestError("No se pudo borrar la imagen, intenta de nuevo", "DELETE_FAILED")

        monkeypatch.setattr(context.storage, "delete", failing_delete)

        response = client.patch(f"{API}/product/ruby", data={"deleted_image_ids": [image.id]}, headers=admin_headers)

        assert response.status_code == 200
        assert image_id not in [img.id for img in self.images_of(db, ruby)]

    def test_imagen_de_otro_producto_no_se_borra(self, client, admin_headers, db, make_product):
        make_product("Ruby")
        emerald = make_product("Emerald")
        emerald_image = db.execute(
            select(ProductImage).where(ProductImage.product_id == emerald.id)
        ).scalar_one()

        client.patch(f"{API}/product/ruby", data={"deleted_image_ids": [emerald_image.id]}, headers=admin_headers)

        assert count(db, select(func.count()).select_from(ProductImage).where(ProductImage.product_id == emerald.id)) == 1

    def test_editar_inexistente(self, client, admin_headers):
        response = client.patch(f"{API}/product/no-existe", data={"name": "Nuevo nombre"}, headers=admin_headers)
        assert response.status_code == 404


class TestDeleteProduct:
    def test_borrar_en_cascada(self, client, admin_headers, db, make_category, make_product, fake_redis):
        rings = make_category("Rings")
        ruby = make_product("Ruby Ring", rings, images=3)
        order = client.post(f"{API}/order", json={
            "name": "Cliente",
            "address": "Calle 1",
            "telephone": "5551234567",
            "email": "cliente@example.com",
            "delivery_method": "pickup",
            "items": [{"product_id": ruby.id, "quantity": 2}]
        }).json()["data"]

        client.get(f"{API}/product/ruby-ring")
        client.get(f"{API}/category/rings")
        client.get(f"{API}/orders", headers=admin_headers)
        client.get(f"{API}/order/{order['id']}", headers=admin_headers)

        response = client.delete(f"{API}/product/{ruby.id}", headers=admin_headers)

        assert response.status_code == 200
        assert fake_redis.cached() == set()
        assert count(db, select(func.count()).select_from(ProductImage).where(ProductImage.product_id == ruby.id)) == 0
        assert count(db, select(func.count()).select_from(OrderItem).where(OrderItem.product_id == ruby.id)) == 0

        assert client.get(f"{API}/product/ruby-ring").status_code == 404
        detail = client.get(f"{API}/order/{order['id']}", headers=admin_headers).json()["data"]
        assert detail["items"] == []
        listing = client.get(f"{API}/orders", headers=admin_headers).json()["data"]
        assert listing[0]["items_count"] == 0

    def test_borrar_inexistente(self, client, admin_headers):
        assert client.delete(f"{API}/product/no-existe", headers=admin_headers).status_code == 404
