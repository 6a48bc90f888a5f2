from datetime import date

from support import DbTestCase

from db import admin, carts, catalog, orders
from db.checkout import checkout
from db.errors import AccessDenied, DuplicateRecord, RecordNotFound, ValidationError


class AdminProductsTestCase(DbTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.admin = await self.make_session("admin@example.com", admin=True)
        self.customer = await self.make_session("buyer@example.com")

    async def test_customers_are_denied(self):
        with self.assertRaises(AccessDenied):
            await admin.list_products(self.customer)
        with self.assertRaises(AccessDenied):
            await admin.create_product(self.customer, "Antimo", 6000, 10)
        with self.assertRaises(AccessDenied):
            await admin.list_orders(self.customer)
        with self.assertRaises(AccessDenied):
            await admin.create_category(self.customer, "Salep")

    async def test_list_includes_out_of_stock(self):
        prod = await self.product("tolak-angin")
        await admin.update_product(self.admin, prod.id, stock=0)
        names = [p.name for p in await admin.list_products(self.admin)]
        self.assertIn("Tolak Angin", names)
        self.assertEqual(names, sorted(names))

    async def test_create_product_derives_slug(self):
        prod = await admin.create_product(
            self.admin, "Vitamin C 1000mg Plus", 40000, 30, dosage="1x sehari",
            expiry_date=date(2025, 1, 31), is_popular=True,
        )
        self.assertEqual(prod.slug, "vitamin-c-1000mg-plus")
        self.assertEqual(prod.price, 40000.0)
        self.assertTrue(prod.is_popular)
        self.assertEqual(prod.expiry_date, date(2025, 1, 31))
        self.assertIn(prod.slug, {p.slug for p in await catalog.list_products()})

        with self.assertRaises(DuplicateRecord):
            await admin.create_product(self.admin, "Vitamin C 1000mg", 1000, 1)

    async def test_create_product_validation(self):
        with self.assertRaises(ValidationError):
            await admin.create_product(self.admin, "Antimo", -1, 10)
        with self.assertRaises(ValidationError):
            await admin.create_product(self.admin, "Antimo", 6000, -5)
        with self.assertRaises(ValidationError):
            await admin.create_product(self.admin, "  ", 6000, 5)
        with self.assertRaises(ValidationError):
            await admin.create_product(self.admin, "Antimo", 6000, 5, colour="red")

    async def test_non_numeric_and_fractional_values_are_validation_errors(self):
        for price, stock in (("abc", 5), (None, 5), (6000, "lima"), (6000, 2.5), (float("nan"), 5)):
            with self.assertRaises(ValidationError):
                await admin.create_product(self.admin, "Antimo", price, stock)
        # rupiah amounts are whole numbers
        with self.assertRaises(ValidationError):
            await admin.create_product(self.admin, "Antimo", 0.1, 5)
        prod = await self.product("paramex-nyeri")
        with self.assertRaises(ValidationError):
            await admin.update_product(self.admin, prod.id, price="15000.50")
        with self.assertRaises(ValidationError):
            await admin.update_product(self.admin, prod.id, expiry_date="31-01-2025")
        self.assertEqual((await self.product("paramex-nyeri")).price, 15000.0)

        # numeric text from the form is accepted
        created = await admin.create_product(
            self.admin, "Antimo", "6000", "12", expiry_date="2025-01-31"
        )
        self.assertEqual((created.price, created.stock), (6000.0, 12))
        self.assertEqual(created.expiry_date, date(2025, 1, 31))
        cleared = await admin.update_product(self.admin, created.id, expiry_date="")
        self.assertIsNone(cleared.expiry_date)

    async def test_update_product(self):
        prod = await self.product("paramex-nyeri")
        updated = await admin.update_product(self.admin, prod.id, price=16000, stock=12)
        self.assertEqual(updated.price, 16000.0)
        self.assertEqual(updated.stock, 12)
        self.assertEqual(updated.name, "Paramex Nyeri")

        renamed = await admin.update_product(self.admin, prod.id, name="Paramex Nyeri Otot", slug="")
        self.assertEqual(renamed.slug, "paramex-nyeri-otot")

        with self.assertRaises(DuplicateRecord):
            await admin.update_product(self.admin, prod.id, slug="tolak-angin")
        with self.assertRaises(RecordNotFound):
            await admin.update_product(self.admin, "missing", price=1)

    async def test_delete_product_keeps_order_snapshot(self):
        prod = await self.product("paracetamol-500mg")
        await carts.add_to_cart(self.customer, prod.id, 2)
        order = await checkout(self.customer, "Jl. Merdeka 1")
        await carts.add_to_cart(self.customer, prod.id, 1)

        await admin.delete_product(self.admin, prod.id)

        self.assertIsNone(await catalog.get_product(prod.id))
        self.assertEqual(await carts.list_cart_items(self.customer), [])
        kept = await orders.get_order(self.customer, order.id)
        self.assertIsNone(kept.items[0].product_id)
        self.assertEqual(kept.items[0].product_name, "Paracetamol 500mg")
        self.assertEqual(kept.items[0].subtotal, 16000.0)

        with self.assertRaises(RecordNotFound):
            await admin.delete_product(self.admin, prod.id)

    async def test_expiring_products(self):
        soon = await admin.create_product(
            self.admin, "Betadine", 20000, 5, expiry_date=date(2024, 6, 10)
        )
        await admin.create_product(self.admin, "Antimo", 6000, 5, expiry_date=date(2025, 6, 10))

        expiring = await admin.list_expiring_products(self.admin, date(2024, 6, 1))
        self.assertEqual([p.id for p in expiring], [soon.id])
        self.assertEqual(await admin.list_expiring_products(self.admin, date(2024, 1, 1)), [])

    async def test_create_category(self):
        cat = await admin.create_category(self.admin, "Salep Kulit", icon="🧴")
        self.assertEqual(cat.slug, "salep-kulit")
        self.assertIn(cat.id, {c.id for c in await catalog.list_categories()})
        with self.assertRaises(DuplicateRecord):
            await admin.create_category(self.admin, "Salep Kulit")
        with self.assertRaises(ValidationError):
            await admin.create_category(self.admin, "")


class AdminOrdersTestCase(DbTestCase):
    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.admin = await self.make_session("admin@example.com", admin=True)
        self.customer = await self.make_session("buyer@example.com")
        prod = await self.product("paracetamol-500mg")
        await carts.add_to_cart(self.customer, prod.id, 2)
        self.order = await checkout(self.customer, "Jl. Merdeka 1")

    async def test_admin_sees_all_orders(self):
        other = await self.make_session("other@example.com")
        await carts.add_to_cart(other, (await self.product("tolak-angin")).id)
        await checkout(other, "Jl. Pemuda 2")

        everything = await admin.list_orders(self.admin)
        self.assertEqual(len(everything), 2)
        self.assertEqual({o.user_id for o in everything}, {self.customer.user_id, other.user_id})

    async def test_status_change_touches_only_status(self):
        updated = await admin.update_order_status(self.admin, self.order.id, "shipped")
        self.assertEqual(updated.status, "shipped")
        self.assertGreaterEqual(updated.updated_at, self.order.updated_at)
        self.assertEqual(updated.created_at, self.order.created_at)
        self.assertEqual(updated.total_amount, self.order.total_amount)
        self.assertEqual(updated.shipping_address, self.order.shipping_address)
        self.assertEqual(updated.items, self.order.items)

        # the customer sees the new status
        seen = await orders.get_order(self.customer, self.order.id)
        self.assertEqual(seen.status, "shipped")

    async def test_status_transitions_are_not_restricted(self):
        await admin.update_order_status(self.admin, self.order.id, "completed")
        back = await admin.update_order_status(self.admin, self.order.id, "pending")
        self.assertEqual(back.status, "pending")

    async def test_status_validation(self):
        with self.assertRaises(ValidationError):
            await admin.update_order_status(self.admin, self.order.id, "lost")
        with self.assertRaises(RecordNotFound):
            await admin.update_order_status(self.admin, "missing", "paid")
        with self.assertRaises(AccessDenied):
            await admin.update_order_status(self.customer, self.order.id, "paid")
        self.assertEqual((await orders.get_order(self.customer, self.order.id)).status, "pending")
