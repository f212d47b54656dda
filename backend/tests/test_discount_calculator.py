import unittest
from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

from greenstore.services.discount_calculator import (
    compute_discount_amount,
    discount_percent,
    is_within_schedule,
    targets_product,
)


def D(value) -> Decimal:
    return Decimal(str(value))


class ComputeDiscountAmountTests(unittest.TestCase):
    def test_no_discount_is_zero(self):
        self.assertEqual(compute_discount_amount(None, 3, D("10.00"), D("30.00")), D("0.00"))

    def test_percent(self):
        discount = {"type": "percent", "value": 10}
        self.assertEqual(compute_discount_amount(discount, 3, D("10.00"), D("30.00")), D("3.00"))

    def test_percent_rounds_half_up_to_cents(self):
        discount = {"type": "percent", "value": D("12.5")}
        # 0.99 * 12.5% = 0.12375
        self.assertEqual(compute_discount_amount(discount, 1, D("0.99"), D("0.99")), D("0.12"))
        discount = {"type": "percent", "value": D("50")}
        # 0.25 * 50% = 0.125
        self.assertEqual(compute_discount_amount(discount, 1, D("0.25"), D("0.25")), D("0.13"))

    def test_fixed_clamped_to_subtotal(self):
        discount = {"type": "fixed", "value": 50}
        self.assertEqual(compute_discount_amount(discount, 2, D("10.00"), D("20.00")), D("20.00"))

    def test_fixed_under_subtotal(self):
        discount = {"type": "fixed", "value": D("5.50")}
        self.assertEqual(compute_discount_amount(discount, 2, D("10.00"), D("20.00")), D("5.50"))

    def test_buy_x_get_y_below_threshold(self):
        discount = {"type": "buy_x_get_y", "buy_quantity": 3, "get_quantity": 1}
        self.assertEqual(compute_discount_amount(discount, 2, D("4.00"), D("8.00")), D("0.00"))

    def test_buy_x_get_y_at_threshold(self):
        discount = {"type": "buy_x_get_y", "buy_quantity": 3, "get_quantity": 1}
        self.assertEqual(compute_discount_amount(discount, 3, D("4.00"), D("12.00")), D("4.00"))

    def test_buy_x_get_y_without_buy_quantity_is_zero(self):
        discount = {"type": "buy_x_get_y", "buy_quantity": None, "get_quantity": 1}
        self.assertEqual(compute_discount_amount(discount, 10, D("4.00"), D("40.00")), D("0.00"))

    def test_fixed_bundle_with_remainder(self):
        # 3 for 10.00 at unit price 4.00, buying 7: 2 bundles (20.00) + 1 unit (4.00)
        discount = {"type": "fixed_bundle", "buy_quantity": 3, "value": D("10.00")}
        self.assertEqual(compute_discount_amount(discount, 7, D("4.00"), D("28.00")), D("4.00"))

    def test_fixed_bundle_pricier_than_units_is_zero(self):
        discount = {"type": "fixed_bundle", "buy_quantity": 2, "value": D("10.00")}
        self.assertEqual(compute_discount_amount(discount, 2, D("4.00"), D("8.00")), D("0.00"))

    def test_min_quantity_not_met_zeroes_every_type(self):
        for discount in (
            {"type": "percent", "value": 10, "min_quantity": 5},
            {"type": "fixed", "value": 3, "min_quantity": 5},
            {"type": "buy_x_get_y", "buy_quantity": 1, "get_quantity": 1, "min_quantity": 5},
            {"type": "fixed_bundle", "buy_quantity": 2, "value": 1, "min_quantity": 5},
        ):
            with self.subTest(kind=discount["type"]):
                self.assertEqual(compute_discount_amount(discount, 4, D("10.00"), D("40.00")), D("0.00"))

    def test_unknown_type_is_zero(self):
        self.assertEqual(compute_discount_amount({"type": "mystery", "value": 5}, 1, D("10"), D("10")), D("0.00"))

    def test_result_always_within_bounds(self):
        cases = [
            ({"type": "percent", "value": 150}, 2, D("3.00")),
            ({"type": "fixed", "value": -5}, 1, D("3.00")),
            ({"type": "buy_x_get_y", "buy_quantity": 1, "get_quantity": 9}, 1, D("3.00")),
            ({"type": "fixed_bundle", "buy_quantity": 1, "value": D("0.00")}, 3, D("3.00")),
        ]
        for discount, quantity, price in cases:
            subtotal = price * quantity
            with self.subTest(discount=discount):
                amount = compute_discount_amount(discount, quantity, price, subtotal)
                self.assertGreaterEqual(amount, D("0"))
                self.assertLessEqual(amount, subtotal)
                self.assertEqual(amount, amount.quantize(D("0.01")))

    def test_accepts_model_like_objects(self):
        discount = SimpleNamespace(type="percent", value=D("20"), min_quantity=None,
                                   buy_quantity=None, get_quantity=None)
        self.assertEqual(compute_discount_amount(discount, 1, D("15.00"), D("15.00")), D("3.00"))


class DiscountPercentTests(unittest.TestCase):
    def test_percent_of_subtotal(self):
        self.assertEqual(discount_percent(D("3.00"), D("30.00")), D("10"))

    def test_zero_subtotal(self):
        self.assertEqual(discount_percent(D("3.00"), D("0")), D("0"))


class ScheduleAndTargetingTests(unittest.TestCase):
    # Wednesday
    NOW = datetime(2026, 3, 4, 12, 30)

    def _within(self, **fields):
        discount = {"starts_at": None, "ends_at": None, "days_of_week": None,
                    "starts_time": None, "ends_time": None}
        discount.update(fields)
        return is_within_schedule(discount, now_utc=self.NOW, now_local=self.NOW)

    def test_unbounded_is_active(self):
        self.assertTrue(self._within())

    def test_date_window(self):
        self.assertTrue(self._within(starts_at=datetime(2026, 3, 1), ends_at=datetime(2026, 3, 31)))
        self.assertFalse(self._within(starts_at=datetime(2026, 3, 5)))
        self.assertFalse(self._within(ends_at=datetime(2026, 3, 4, 12, 0)))

    def test_days_of_week(self):
        self.assertTrue(self._within(days_of_week=[2]))
        self.assertFalse(self._within(days_of_week=[0, 1]))

    def test_time_window(self):
        self.assertTrue(self._within(starts_time="12:00", ends_time="13:00"))
        self.assertFalse(self._within(starts_time="13:00", ends_time="14:00"))

    def test_time_window_wrapping_midnight(self):
        self.assertFalse(self._within(starts_time="22:00", ends_time="06:00"))
        late = datetime(2026, 3, 4, 23, 15)
        self.assertTrue(is_within_schedule(
            {"starts_time": "22:00", "ends_time": "06:00"}, now_utc=late, now_local=late,
        ))

    def test_targeting(self):
        product = SimpleNamespace(id=7, category_id=3)
        self.assertTrue(targets_product({"target_type": "all"}, product))
        self.assertTrue(targets_product({"target_type": "product", "target_value": "7"}, product))
        self.assertFalse(targets_product({"target_type": "product", "target_value": "8"}, product))
        self.assertTrue(targets_product({"target_type": "category", "target_value": "3"}, product))
        self.assertFalse(targets_product({"target_type": "category", "target_value": "4"}, product))
        self.assertTrue(targets_product({"target_type": "combo", "criteria": [5, 7]}, product))
        self.assertFalse(targets_product({"target_type": "combo", "criteria": []}, product))


if __name__ == "__main__":
    unittest.main()
