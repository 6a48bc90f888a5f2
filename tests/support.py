import os
import sys
import tempfile
import unittest

# Ensure project src/ is on sys.path for imports
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from db import auth  # noqa: E402
from db import catalog  # noqa: E402
from db import database as db_database  # noqa: E402
from utils.state import AuthSession  # noqa: E402


class DbTestCase(unittest.IsolatedAsyncioTestCase):
    """Every test gets a fresh, seeded database in a temporary directory."""

    def setUp(self):
        # Point the DB to a temporary file and force re-initialization
        self.temp_dir = tempfile.TemporaryDirectory()
        self.db_path = os.path.join(self.temp_dir.name, "test.sqlite")
        db_database.DB_PATH = self.db_path
        db_database._initialized = False

    async def asyncSetUp(self):
        # Touch initialization by opening a connection
        async with db_database.connect() as conn:
            cur = await conn.execute("SELECT COUNT(*) FROM products;")
            await cur.fetchone()
            await cur.close()

    def tearDown(self):
        self.temp_dir.cleanup()

    async def make_session(
        self, email: str, pwd: str = "pw", admin: bool = False, full_name=None
    ) -> AuthSession:
        uid = await auth.register(email, pwd, full_name)
        if admin:
            await auth.grant_role(uid, "admin")
        session = AuthSession()
        self.assertTrue(await session.sign_in(email, pwd))
        return session

    async def product(self, slug: str):
        prod = await catalog.get_product_by_slug(slug)
        self.assertIsNotNone(prod, slug)
        return prod
