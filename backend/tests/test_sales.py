"""
Sales pipeline tests (HTTP level).

A sale either commits all of sale record + stock deduction + movement, or
none of them.
"""

from datetime import timedelta
from decimal import Decimal

from greenstore.extensions import db
from greenstore.models import Sale, StockMovement
from greenstore.services import sales_service
from greenstore.time_utils import utcnow


def sell(client, headers, product, quantity=3, **extra):
    body = {"product_id": product.id, "quantity": quantity, "payment_method": "cash"}
    body.update(extra)
    return client.post("/api/sales", json=body, headers=headers)


def assert_untouched(product, stock="100"):
    db.session.expire_all()
    assert product.current_stock == Decimal(stock)
    assert db.session.query(Sale).count() == 0
    assert db.session.query(StockMovement).count() == 0


class TestPlainSale:
    def test_sale_deducts_stock_and_writes_movement(self, client, operator, operator_headers, product):
        resp = sell(client, operator_headers, product)

        assert resp.status_code == 201
        assert resp.json["total"] == "30.00"
        assert resp.json["discount_amount"] == "0.00"
        assert resp.json["final_total"] == "30.00"

        db.session.expire_all()
        assert product.current_stock == Decimal("97")
        movement = db.session.query(StockMovement).one()
        assert (movement.type, movement.delta) == ("sale", Decimal("-3"))
        assert movement.performed_by_user_id == operator.id

        sale = db.session.get(Sale, resp.json["id"])
        assert sale.sold_by_user_id == operator.id
        assert sale.discount_id is None

    def test_get_sale(self, client, operator_headers, product):
        sale_id = sell(client, operator_headers, product, quantity=2).json["id"]

        resp = client.get(f"/api/sales/{sale_id}", headers=operator_headers)
        assert resp.status_code == 200
        assert resp.json["sale"]["quantity"] == "2"
        assert resp.json["sale"]["final_total"] == "20.00"

    def test_get_unknown_sale(self, client, operator_headers):
        resp = client.get("/api/sales/999", headers=operator_headers)
        assert resp.status_code == 404
        assert resp.json["error"]["code"] == "NOT_FOUND"

    def test_exact_stock_sells_out(self, client, operator_headers, make_product):
        last_one = make_product(stock="1")
        assert sell(client, operator_headers, last_one, quantity=1).status_code == 201
        db.session.expire_all()
        assert last_one.current_stock == Decimal("0")

    def test_weighted_product_fractional_sale(self, client, operator_headers, make_product):
        apples = make_product(unit_type="kg", price="3.99", stock="10")
        resp = sell(client, operator_headers, apples, quantity="1.5")
        assert resp.status_code == 201
        # 3.99 * 1.5 = 5.985
        assert resp.json["total"] == "5.99"

    def test_sell_remaining_weight_after_dispatch(self, client, operator_headers, make_product):
        rice = make_product(unit_type="kg", price="4.00", stock="0.7")
        moved = client.post(
            "/api/stock/move",
            json={"product_id": rice.id, "quantity": "0.4", "type": "outbound", "reason": "kitchen"},
            headers=operator_headers,
        )
        assert moved.json["current_stock"] == "0.3"

        resp = sell(client, operator_headers, rice, quantity="0.3")

        assert resp.status_code == 201
        assert resp.json["final_total"] == "1.20"
        db.session.expire_all()
        assert rice.current_stock == Decimal("0")


class TestSaleRejections:
    def test_unknown_product(self, client, operator_headers, db_session):
        resp = client.post(
            "/api/sales",
            json={"product_id": 999, "quantity": 1, "payment_method": "cash"},
            headers=operator_headers,
        )
        assert resp.status_code == 404

    def test_insufficient_stock(self, client, operator_headers, product):
        resp = sell(client, operator_headers, product, quantity=101)

        assert resp.status_code == 400
        assert resp.json["error"]["message"] == "Insufficient stock"
        assert resp.json["error"]["details"]["current_stock"] is not None
        assert_untouched(product)

    def test_fractional_quantity_for_unit_product(self, client, operator_headers, product):
        resp = sell(client, operator_headers, product, quantity="1.5")
        assert resp.status_code == 400
        assert resp.json["error"]["code"] == "VALIDATION_ERROR"
        assert_untouched(product)

    def test_quantity_above_column_range(self, client, operator_headers, product):
        resp = sell(client, operator_headers, product, quantity="1e30")

        assert resp.status_code == 400
        assert resp.json["error"]["code"] == "VALIDATION_ERROR"
        assert resp.json["error"]["details"][0]["field"] == "quantity"
        assert_untouched(product)

    def test_missing_fields(self, client, operator_headers, db_session):
        resp = client.post("/api/sales", json={"quantity": 0}, headers=operator_headers)
        assert resp.status_code == 400
        fields = {e["field"] for e in resp.json["error"]["details"]}
        assert fields == {"product_id", "payment_method", "quantity"}

    def test_failure_after_deduction_rolls_everything_back(self, client, operator_headers, product, monkeypatch):
        def explode(ctx):
            raise RuntimeError("disk on fire")

        steps = sales_service.SALE_STEPS[:-1] + (explode,)
        monkeypatch.setattr(sales_service, "SALE_STEPS", steps)

        resp = sell(client, operator_headers, product)

        assert resp.status_code == 500
        assert resp.json["error"]["code"] == "INTERNAL_ERROR"
        assert "disk" not in resp.json["error"]["message"]
        assert_untouched(product)


class TestDiscountedSale:
    def test_percent_discount(self, client, operator_headers, product, make_discount):
        discount = make_discount(type="percent", value=Decimal("10"))

        resp = sell(client, operator_headers, product, discount_id=discount.id)

        assert resp.status_code == 201
        assert resp.json["discount_amount"] == "3.00"
        assert resp.json["final_total"] == "27.00"
        assert db.session.get(Sale, resp.json["id"]).discount_id == discount.id

    def test_fixed_bundle(self, client, operator_headers, make_product, make_discount):
        soda = make_product(price="4.00")
        bundle = make_discount(type="fixed_bundle", buy_quantity=3, value=Decimal("10.00"))

        resp = sell(client, operator_headers, soda, quantity=7, discount_id=bundle.id)
        assert resp.json["total"] == "28.00"
        assert resp.json["discount_amount"] == "4.00"
        assert resp.json["final_total"] == "24.00"

    def test_discount_over_ceiling_is_forbidden(self, client, operator_headers, product, make_discount, set_policy):
        set_policy(max_discount="20")
        generous = make_discount(type="percent", value=Decimal("25"))

        resp = sell(client, operator_headers, product, discount_id=generous.id)

        assert resp.status_code == 403
        assert resp.json["error"]["code"] == "FORBIDDEN"
        assert_untouched(product)

    def test_discount_at_ceiling_passes(self, client, operator_headers, product, make_discount, set_policy):
        set_policy(max_discount="20")
        discount = make_discount(type="percent", value=Decimal("20"))
        assert sell(client, operator_headers, product, discount_id=discount.id).status_code == 201

    def test_inactive_discount(self, client, operator_headers, product, make_discount):
        discount = make_discount(active=False)
        resp = sell(client, operator_headers, product, discount_id=discount.id)
        assert resp.status_code == 400
        assert resp.json["error"]["message"] == "Invalid discount"
        assert_untouched(product)

    def test_unknown_discount(self, client, operator_headers, product):
        resp = sell(client, operator_headers, product, discount_id=999)
        assert resp.status_code == 400
        assert_untouched(product)

    def test_discount_outside_schedule(self, client, operator_headers, product, make_discount):
        expired = make_discount(ends_at=utcnow() - timedelta(days=1))
        resp = sell(client, operator_headers, product, discount_id=expired.id)
        assert resp.status_code == 400
        assert resp.json["error"]["details"] == {"reason": "outside_schedule"}

    def test_discount_for_other_product(self, client, operator_headers, product, make_discount):
        other = make_discount(target_type="product", target_value=str(product.id + 1000))
        resp = sell(client, operator_headers, product, discount_id=other.id)
        assert resp.status_code == 400
        assert resp.json["error"]["details"] == {"reason": "not_applicable"}

    def test_category_discount(self, client, operator_headers, make_product, category, make_discount):
        lettuce = make_product(category=category, price="2.00")
        produce = make_discount(target_type="category", target_value=str(category.id), value=Decimal("50"))
        resp = sell(client, operator_headers, lettuce, quantity=2, discount_id=produce.id)
        assert resp.json["final_total"] == "2.00"
