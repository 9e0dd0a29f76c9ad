import unittest
from datetime import datetime, timedelta, timezone

from dbcase import DatabaseTestCase
from db.database import utcnow
from db.models import ProductPrice, ProductType
from shop import admin
from shop.catalog import fetch_product_by_id, fetch_products, select_current_price


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def price_row(price, valid_from, valid_to=None, pid="p") -> ProductPrice:
    return ProductPrice(
        id=f"{pid}-{price}",
        product_id=pid,
        price=price,
        currency="SEK",
        valid_from=valid_from,
        valid_to=valid_to,
    )


class SelectCurrentPriceTestCase(unittest.TestCase):
    def setUp(self):
        self.history = [
            price_row(100.0, utc(2025, 1, 1), utc(2025, 2, 1)),
            price_row(120.0, utc(2025, 2, 1)),
        ]

    def test_open_ended_row_is_current(self):
        self.assertEqual(select_current_price(self.history, utc(2025, 3, 1)).price, 120.0)

    def test_as_of_earlier_instant(self):
        self.assertEqual(select_current_price(self.history, utc(2025, 1, 15)).price, 100.0)

    def test_boundary_prefers_open_ended_row(self):
        self.assertEqual(select_current_price(self.history, utc(2025, 2, 1)).price, 120.0)

    def test_no_valid_row(self):
        self.assertIsNone(select_current_price(self.history, utc(2024, 12, 31)))
        self.assertIsNone(select_current_price([], utc(2025, 3, 1)))

    def test_expired_rows_are_ignored(self):
        rows = [price_row(80.0, utc(2024, 1, 1), utc(2024, 6, 1))]
        self.assertIsNone(select_current_price(rows, utc(2025, 1, 1)))

    def test_future_rows_are_ignored(self):
        rows = self.history + [price_row(150.0, utc(2030, 1, 1))]
        self.assertEqual(select_current_price(rows, utc(2025, 3, 1)).price, 120.0)

    def test_naive_instant_is_read_as_utc(self):
        self.assertEqual(select_current_price(self.history, datetime(2025, 1, 15)).price, 100.0)
        self.assertEqual(select_current_price(self.history, datetime(2025, 3, 1)).price, 120.0)


class CatalogTestCase(DatabaseTestCase):
    async def test_fetch_products_merges_current_price(self):
        products = {p.id: p for p in await fetch_products(self.db)}

        # seed: rondo moved from 249 to 299 in 2024
        self.assertEqual(products["prod-rondo"].price, 299.0)
        self.assertEqual(products["prod-rondo"].currency, "SEK")
        self.assertIsNone(products["prod-reserve"].price)
        # out of stock products are hidden from the shop
        self.assertNotIn("prod-tote", products)

        names = [p.name for p in products.values()]
        self.assertEqual(names, sorted(names))

    async def test_fetch_products_historical_price(self):
        products = {p.id: p for p in await fetch_products(self.db, now=utc(2024, 3, 1))}
        self.assertEqual(products["prod-rondo"].price, 249.0)

    async def test_fetch_with_naive_datetime(self):
        products = {p.id: p for p in await fetch_products(self.db, now=datetime(2025, 3, 1))}
        self.assertEqual(products["prod-rondo"].price, 299.0)

        product = await fetch_product_by_id(self.db, "prod-rondo", datetime(2024, 3, 1))
        self.assertEqual(product.price, 249.0)

    async def test_filter_by_type_and_availability(self):
        liquor = await fetch_products(self.db, ProductType.LIQUOR)
        self.assertEqual([p.id for p in liquor], ["prod-vinbrannvin"])

        merch = await fetch_products(self.db, ProductType.MERCHANDISE)
        self.assertEqual(merch, [])
        merch = await fetch_products(self.db, ProductType.MERCHANDISE, only_available=False)
        self.assertEqual([p.id for p in merch], ["prod-tote"])

    async def test_fetch_product_by_id(self):
        product = await fetch_product_by_id(self.db, "prod-solaris")
        self.assertEqual(product.name, "Solaris 2023")
        self.assertEqual(product.price, 229.0)
        self.assertIsNone(await fetch_product_by_id(self.db, "no-such-product"))

    async def test_zero_price_is_kept(self):
        result = await admin.update_product(self.db, self.admin.id, "prod-solaris", {}, 0.0)
        self.assertTrue(result.success, result.error)

        product = await fetch_product_by_id(self.db, "prod-solaris", utcnow() + timedelta(seconds=1))
        self.assertEqual(product.price, 0.0)
        self.assertIsNotNone(product.price)


if __name__ == "__main__":
    unittest.main()
