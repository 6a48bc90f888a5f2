from support import DbTestCase

from db import catalog
from db import database as db_database


class CatalogTestCase(DbTestCase):
    async def _set_stock(self, slug: str, stock: int):
        async with db_database.connect() as conn:
            await conn.execute("UPDATE products SET stock = ? WHERE slug = ?;", (stock, slug))
            await conn.commit()

    async def test_list_categories_sorted_by_name(self):
        categories = await catalog.list_categories()
        names = [c.name for c in categories]
        self.assertEqual(len(names), 6)
        self.assertEqual(sorted(names), names)
        self.assertIn("obat-demam", {c.slug for c in categories})

    async def test_products_sorted_popular_first_then_name(self):
        products = await catalog.list_products()
        self.assertEqual(
            [p.name for p in products],
            [
                "Bodrex Flu & Batuk",
                "OBH Combi Batuk Flu",
                "Tolak Angin",
                "Vitamin C 1000mg",
                "Paracetamol 500mg",
                "Paramex Nyeri",
            ],
        )
        self.assertTrue(all(p.category_name for p in products))

    async def test_out_of_stock_products_are_hidden(self):
        await self._set_stock("tolak-angin", 0)
        products = await catalog.list_products()
        self.assertNotIn("tolak-angin", {p.slug for p in products})
        self.assertTrue(all(p.stock > 0 for p in products))
        # still reachable directly
        prod = await catalog.get_product_by_slug("tolak-angin")
        self.assertEqual(prod.stock, 0)

    async def test_search_is_case_insensitive_substring_on_name(self):
        for q in ("BATUK", "batuk", "bAtUk"):
            products = await catalog.list_products(search=q)
            self.assertEqual(
                {p.slug for p in products}, {"obh-combi-batuk-flu", "bodrex-flu-batuk"}
            )
            self.assertTrue(all("batuk" in p.name.lower() for p in products))

        # whitespace is part of the search text
        for q in (" Batuk ", "mg ", "C 1000", "  para"):
            products = await catalog.list_products(search=q)
            self.assertTrue(all(q.casefold() in p.name.casefold() for p in products), q)
        self.assertEqual(
            [p.slug for p in await catalog.list_products(search=" Batuk ")],
            ["obh-combi-batuk-flu"],
        )
        self.assertEqual(await catalog.list_products(search="mg "), [])
        self.assertEqual(
            [p.slug for p in await catalog.list_products(search="C 1000")],
            ["vitamin-c-1000mg"],
        )
        self.assertEqual(len(await catalog.list_products(search="")), 6)

        # description text does not match
        self.assertEqual(await catalog.list_products(search="jeruk"), [])
        # LIKE wildcards are taken literally
        self.assertEqual(await catalog.list_products(search="%"), [])
        self.assertEqual(await catalog.list_products(search="_"), [])

    async def test_search_folds_non_ascii_case(self):
        async with db_database.connect() as conn:
            await conn.execute(
                "INSERT INTO products(name, slug, price, stock) VALUES ('ÉRGOTAMIN Ünggul', 'ergotamin', 9000, 5);"
            )
            await conn.commit()
        for q in ("érgotamin", "ÉRGO", "ünggul", "Ünggul"):
            products = await catalog.list_products(search=q)
            self.assertEqual([p.slug for p in products], ["ergotamin"], q)

    async def test_category_filter_combined_with_search(self):
        demam = next(c for c in await catalog.list_categories() if c.slug == "obat-demam")
        products = await catalog.list_products(category_id=demam.id)
        self.assertEqual([p.slug for p in products], ["paracetamol-500mg"])
        self.assertTrue(all(p.category_id == demam.id for p in products))

        self.assertEqual(await catalog.list_products(category_id=demam.id, search="paramex"), [])
        both = await catalog.list_products(search="para")
        self.assertEqual([p.name for p in both], ["Paracetamol 500mg", "Paramex Nyeri"])

    async def test_get_product_lookups(self):
        prod = await catalog.get_product_by_slug("paracetamol-500mg")
        self.assertEqual(prod.name, "Paracetamol 500mg")
        self.assertEqual(prod.price, 8000.0)
        self.assertEqual(prod.stock, 120)
        self.assertFalse(prod.is_popular)
        self.assertEqual(prod.category_name, "Obat Demam")
        self.assertIsNotNone(prod.stock_entry_date)

        self.assertEqual((await catalog.get_product(prod.id)).slug, prod.slug)
        self.assertIsNone(await catalog.get_product("missing"))
        self.assertIsNone(await catalog.get_product_by_slug("missing"))
        self.assertIsNone(await catalog.get_product_by_barcode("0000"))

        async with db_database.connect() as conn:
            await conn.execute(
                "UPDATE products SET barcode = '8991234567890' WHERE id = ?;", (prod.id,)
            )
            await conn.commit()
        self.assertEqual((await catalog.get_product_by_barcode("8991234567890")).id, prod.id)
