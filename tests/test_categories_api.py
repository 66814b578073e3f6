"""
Tests de los endpoints de categorías.
"""
from sqlalchemy import select

from models import Product

API = "/api/v1"


class TestCategoryAuth:
    def test_crear_sin_token(self, client):
        response = client.post(f"{API}/category", json={"name": "Rings"})
        assert response.status_code == 401
        assert response.json()["error"] == "AUTHENTICATION_REQUIRED"

    def test_crear_con_token_invalido(self, client):
        response = client.post(
            f"{API}/category",
            json={"name": "Rings"},
            headers={"Authorization": "Bearer invalid_token_12345"}
        )
        assert response.status_code == 401
        assert response.json()["error"] == "INVALID_TOKEN"

    def test_listar_es_publico(self, client):
        response = client.get(f"{API}/categories")
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "status_code": 200,
            "message": "Categorías obtenidas exitosamente",
            "data": []
        }


class TestCategoryCrud:
    def test_crear_categoria(self, client, admin_headers, fake_redis):
        client.get(f"{API}/categories")
        assert "categories:all" in fake_redis.store

        response = client.post(f"{API}/category", json={"name": "Blue Gems"}, headers=admin_headers)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["slug"] == "blue-gems"
        assert "categories:all" not in fake_redis.store

        listing = client.get(f"{API}/categories").json()["data"]
        assert [category["slug"] for category in listing] == ["blue-gems"]

    def test_slug_duplicado(self, client, admin_headers, make_category):
        make_category("Rings")
        response = client.post(f"{API}/category", json={"name": "rings"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "DUPLICATE_SLUG"

    def test_slug_reservado(self, client, admin_headers):
        response = client.post(f"{API}/category", json={"name": "All"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "RESERVED_SLUG"

    def test_nombre_sin_caracteres_validos(self, client, admin_headers):
        response = client.post(f"{API}/category", json={"name": "@@@"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_NAME"

    def test_validacion_de_body(self, client, admin_headers):
        response = client.post(f"{API}/category", json={}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "VALIDATION_ERROR"

    def test_renombrar_invalida_slug_viejo_nuevo_y_productos(self, client, admin_headers, make_category, make_product, fake_redis):
        rings = make_category("Rings")
        make_product("Ruby Ring", rings)

        client.get(f"{API}/category/rings")
        client.get(f"{API}/product/ruby-ring")
        client.get(f"{API}/products")
        assert {"category:rings:page:1:limit:12", "product:ruby-ring", "products:all"} <= set(fake_redis.store)

        response = client.patch(f"{API}/category/{rings.id}", json={"name": "Gold Rings"}, headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"]["slug"] == "gold-rings"
        assert fake_redis.cached() == set()

        product = client.get(f"{API}/product/ruby-ring").json()["data"]
        assert product["category"]["slug"] == "gold-rings"
        assert client.get(f"{API}/category/rings").status_code == 404
        assert client.get(f"{API}/category/gold-rings").json()["total"] == 1

    def test_renombrar_a_slug_existente(self, client, admin_headers, make_category):
        rings = make_category("Rings")
        make_category("Pearls")
        response = client.patch(f"{API}/category/{rings.id}", json={"name": "Pearls"}, headers=admin_headers)
        assert response.status_code == 400

    def test_renombrar_solo_mayusculas(self, client, admin_headers, make_category):
        rings = make_category("Rings")
        response = client.patch(f"{API}/category/{rings.id}", json={"name": "RINGS"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["data"]["slug"] == "rings"

    def test_renombrar_inexistente(self, client, admin_headers):
        response = client.patch(f"{API}/category/no-existe", json={"name": "X Y"}, headers=admin_headers)
        assert response.status_code == 404

    def test_borrar_categoria_conserva_productos(self, client, admin_headers, db, make_category, make_product, fake_redis):
        rings = make_category("Rings")
        ruby = make_product("Ruby Ring", rings)
        client.get(f"{API}/product/ruby-ring")
        client.get(f"{API}/category/rings")

        response = client.delete(f"{API}/category/{rings.id}", headers=admin_headers)

        assert response.status_code == 200
        assert fake_redis.cached() == set()
        db.expire_all()
        product = db.execute(select(Product).where(Product.id == ruby.id)).scalar_one()
        assert product.category_id is None

        data = client.get(f"{API}/product/ruby-ring").json()["data"]
        assert data["category"] is None
        assert client.get(f"{API}/category/rings").status_code == 404

    def test_borrar_inexistente(self, client, admin_headers):
        assert client.delete(f"{API}/category/no-existe", headers=admin_headers).status_code == 404


class TestCategoryListing:
    def test_categoria_inexistente_404_sin_cachear(self, client, fake_redis):
        response = client.get(f"{API}/category/no-existe")
        assert response.status_code == 404
        assert response.json()["error"] == "CATEGORY_NOT_FOUND"
        assert fake_redis.cached() == set()

    def test_paginacion(self, client, make_category, make_product):
        rings = make_category("Rings")
        for i in range(3):
            make_product(f"Ring {i}", rings)

        body = client.get(f"{API}/category/rings", params={"page": 2, "limit": 2}).json()
        assert body["total"] == 3
        assert body["totalPages"] == 2
        assert len(body["data"]["products"]) == 1

    def test_parametros_invalidos_se_normalizan(self, client, make_category, fake_redis):
        make_category("Rings")
        response = client.get(f"{API}/category/rings", params={"page": "abc", "limit": "-5"})
        assert response.status_code == 200
        assert response.json()["page"] == 1
        assert response.json()["limit"] == 12
        assert "category:rings:page:1:limit:12" in fake_redis.store

    def test_hit_es_identico_byte_a_byte(self, client, make_category, make_product):
        rings = make_category("Rings")
        make_product("Ruby Ring", rings)
        first = client.get(f"{API}/category/rings")
        second = client.get(f"{API}/category/rings")
        assert first.content == second.content
        assert second.headers["content-type"] == "application/json"

    def test_pseudo_categoria_all(self, client, make_category, make_product):
        make_product("Ruby Ring", make_category("Rings"))
        make_product("Loose Pearl")
        body = client.get(f"{API}/category/all").json()
        assert body["total"] == 2
        assert body["data"]["category"]["slug"] == "all"


class TestCategoryChangesInOrders:
    """El detalle de una orden embebe la categoría de cada producto"""

    def place_order(self, client, product):
        response = client.post(f"{API}/order", json={
            "name": "Ana",
            "address": "Calle 1",
            "telephone": "5550001111",
            "email": "ana@example.com",
            "delivery_method": "pickup",
            "items": [{"product_id": product.id, "quantity": 1}],
        })
        assert response.status_code == 201
        return response.json()["data"]["id"]

    def test_renombrar_refresca_detalle_de_orden(self, client, admin_headers, make_category, make_product, fake_redis):
        sapphires = make_category("Blue Sapphires")
        ring = make_product("Sapphire Ring", sapphires)
        order_id = self.place_order(client, ring)
        client.get(f"{API}/order/{order_id}", headers=admin_headers)
        assert f"order:{order_id}" in fake_redis.store

        client.patch(f"{API}/category/{sapphires.id}", json={"name": "Rings"}, headers=admin_headers)

        assert f"order:{order_id}" not in fake_redis.store
        item = client.get(f"{API}/order/{order_id}", headers=admin_headers).json()["data"]["items"][0]
        assert item["product"]["category"]["name"] == "Rings"
        assert item["product"]["category"]["slug"] == "rings"

    def test_borrar_refresca_detalle_de_orden(self, client, admin_headers, make_category, make_product, fake_redis):
        sapphires = make_category("Blue Sapphires")
        ring = make_product("Sapphire Ring", sapphires)
        order_id = self.place_order(client, ring)
        client.get(f"{API}/order/{order_id}", headers=admin_headers)

        client.delete(f"{API}/category/{sapphires.id}", headers=admin_headers)

        assert f"order:{order_id}" not in fake_redis.store
        item = client.get(f"{API}/order/{order_id}", headers=admin_headers).json()["data"]["items"][0]
        assert item["product"]["category_id"] is None
        assert item["product"]["category"] is None
