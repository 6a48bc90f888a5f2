import sqlite3

from support import DbTestCase

from db import admin, carts, orders
from db import database as db_database
from db.checkout import checkout
from db.errors import EmptyCartError, InsufficientStock, NotAuthenticated, ValidationError
from utils.state import AuthSession


class CheckoutTestCase(DbTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.session = await self.make_session("buyer@example.com")
        self.paracetamol = await self.product("paracetamol-500mg")
        self.vitamin = await self.product("vitamin-c-1000mg")

    async def _order_count(self) -> int:
        async with db_database.connect() as conn:
            cur = await conn.execute("SELECT COUNT(*) FROM orders;")
            (count,) = await cur.fetchone()
            await cur.close()
        return count

    async def test_checkout_single_item(self):
        await carts.add_to_cart(self.session, self.paracetamol.id, 2)
        order = await checkout(self.session, "Jl. Merdeka 1")

        self.assertTrue(order.order_number.startswith("WM"))
        self.assertEqual(order.status, "pending")
        self.assertEqual(order.payment_method, "cash")
        self.assertEqual(order.shipping_address, "Jl. Merdeka 1")
        self.assertEqual(order.total_amount, 16000.0)
        self.assertEqual(len(order.items), 1)
        item = order.items[0]
        self.assertEqual(item.product_id, self.paracetamol.id)
        self.assertEqual(item.product_name, "Paracetamol 500mg")
        self.assertEqual(item.product_price, 8000.0)
        self.assertEqual(item.quantity, 2)
        self.assertEqual(item.subtotal, 16000.0)

        self.assertEqual((await self.product("paracetamol-500mg")).stock, 118)
        self.assertEqual(await carts.list_cart_items(self.session), [])
        self.assertIsNotNone(await carts.get_cart(self.session))

    async def test_total_is_sum_of_line_subtotals(self):
        await carts.add_to_cart(self.session, self.paracetamol.id, 3)
        await carts.add_to_cart(self.session, self.vitamin.id, 2)
        order = await checkout(self.session, "Jl. Sudirman 5", payment_method="transfer")

        self.assertEqual(order.payment_method, "transfer")
        self.assertEqual([i.product_name for i in order.items], ["Paracetamol 500mg", "Vitamin C 1000mg"])
        self.assertEqual(order.total_amount, sum(i.subtotal for i in order.items))
        self.assertEqual(order.total_amount, 94000.0)
        self.assertEqual((await self.product("vitamin-c-1000mg")).stock, 148)

    async def test_total_matches_lines_for_any_stored_prices(self):
        boss = await self.make_session("admin@example.com", admin=True)
        with self.assertRaises(ValidationError):
            await admin.create_product(boss, "Tetes Mata", 0.1, 10)
        async with db_database.connect() as conn:
            with self.assertRaises(sqlite3.IntegrityError):
                await conn.execute(
                    "UPDATE products SET price = 0.2 WHERE id = ?;", (self.vitamin.id,)
                )

        odd = [
            await admin.create_product(boss, "Minyak Kayu Putih", 12345, 10),
            await admin.create_product(boss, "Sirup Anak", 9999, 10),
            await admin.create_product(boss, "Salep Kulit", 3, 10),
        ]
        for qty, prod in enumerate(odd, start=1):
            await carts.add_to_cart(self.session, prod.id, qty)
        order = await checkout(self.session, "Jl. Merdeka 1")

        self.assertEqual(order.total_amount, sum(i.subtotal for i in order.items))
        self.assertEqual(order.total_amount, 12345 + 2 * 9999 + 3 * 3)
        for item in order.items:
            self.assertEqual(item.subtotal, item.product_price * item.quantity)

    async def test_empty_cart_creates_nothing(self):
        with self.assertRaises(EmptyCartError):
            await checkout(self.session, "Jl. Merdeka 1")
        self.assertEqual(await self._order_count(), 0)

    async def test_blank_address_changes_nothing(self):
        await carts.add_to_cart(self.session, self.paracetamol.id, 2)
        for address in ("", "   ", None):
            with self.assertRaises(ValidationError):
                await checkout(self.session, address)

        self.assertEqual(await self._order_count(), 0)
        self.assertEqual((await self.product("paracetamol-500mg")).stock, 120)
        self.assertEqual((await carts.list_cart_items(self.session))[0].quantity, 2)

    async def test_insufficient_stock_rolls_back_everything(self):
        await carts.add_to_cart(self.session, self.vitamin.id, 1)
        await carts.add_to_cart(self.session, self.paracetamol.id, 5)
        # stock drops after the item went into the cart
        async with db_database.connect() as conn:
            await conn.execute(
                "UPDATE products SET stock = 3 WHERE id = ?;", (self.paracetamol.id,)
            )
            await conn.commit()

        with self.assertRaises(InsufficientStock) as ctx:
            await checkout(self.session, "Jl. Merdeka 1")
        self.assertEqual(ctx.exception.requested, 5)
        self.assertEqual(ctx.exception.available, 3)

        self.assertEqual(await self._order_count(), 0)
        async with db_database.connect() as conn:
            cur = await conn.execute("SELECT COUNT(*) FROM order_items;")
            (count,) = await cur.fetchone()
            await cur.close()
        self.assertEqual(count, 0)
        self.assertEqual((await self.product("paracetamol-500mg")).stock, 3)
        self.assertEqual((await self.product("vitamin-c-1000mg")).stock, 150)
        self.assertEqual(len(await carts.list_cart_items(self.session)), 2)

    async def test_checkout_key_makes_retries_idempotent(self):
        await carts.add_to_cart(self.session, self.paracetamol.id, 2)
        first = await checkout(self.session, "Jl. Merdeka 1", checkout_key="k-1")
        again = await checkout(self.session, "Jl. Merdeka 1", checkout_key="k-1")

        self.assertEqual(again.id, first.id)
        self.assertEqual(await self._order_count(), 1)
        self.assertEqual((await self.product("paracetamol-500mg")).stock, 118)

        # a fresh key with an empty cart is a new attempt
        with self.assertRaises(EmptyCartError):
            await checkout(self.session, "Jl. Merdeka 1", checkout_key="k-2")

    async def test_order_lines_are_snapshots(self):
        await carts.add_to_cart(self.session, self.paracetamol.id, 2)
        order = await checkout(self.session, "Jl. Merdeka 1")

        boss = await self.make_session("admin@example.com", admin=True)
        await admin.update_product(boss, self.paracetamol.id, name="Paracetamol Baru", price=9500)

        again = await orders.get_order(self.session, order.id)
        self.assertEqual(again.items[0].product_name, "Paracetamol 500mg")
        self.assertEqual(again.items[0].product_price, 8000.0)
        self.assertEqual(again.total_amount, 16000.0)

    async def test_order_numbers_are_unique(self):
        numbers = set()
        for _ in range(3):
            await carts.add_to_cart(self.session, self.paracetamol.id)
            numbers.add((await checkout(self.session, "Jl. Merdeka 1")).order_number)
        self.assertEqual(len(numbers), 3)
        self.assertTrue(all(n.startswith("WM") and n[2:].isdigit() for n in numbers))

    async def test_requires_sign_in(self):
        with self.assertRaises(NotAuthenticated):
            await checkout(AuthSession(), "Jl. Merdeka 1")
