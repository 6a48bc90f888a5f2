from support import DbTestCase

import set_admin
from db import auth
from db.errors import AccessDenied, DuplicateRecord, NotAuthenticated, RecordNotFound, ValidationError
from utils.state import AuthSession


class AuthTestCase(DbTestCase):
    async def test_register_and_authenticate(self):
        uid = await auth.register("Siti@Example.com", "rahasia", "Siti")
        self.assertIsInstance(uid, str)

        # emails are normalized to lowercase
        user = await auth.authenticate("siti@example.com", "rahasia")
        self.assertIsNotNone(user)
        self.assertEqual(user.id, uid)
        self.assertEqual(user.email, "siti@example.com")

        self.assertIsNone(await auth.authenticate("siti@example.com", "wrong"))
        self.assertIsNone(await auth.authenticate("nobody@example.com", "rahasia"))

    async def test_register_rejects_duplicates_and_blanks(self):
        await auth.register("a@example.com", "pw")
        with self.assertRaises(DuplicateRecord):
            await auth.register("A@example.com", "pw")
        with self.assertRaises(ValidationError):
            await auth.register("", "pw")
        with self.assertRaises(ValidationError):
            await auth.register("b@example.com", "")

    async def test_password_is_not_stored_in_plain_text(self):
        stored = auth.hash_password("rahasia")
        self.assertNotIn("rahasia", stored)
        self.assertTrue(auth.verify_password("rahasia", stored))
        self.assertFalse(auth.verify_password("Rahasia", stored))

    async def test_roles(self):
        uid = await auth.register("c@example.com", "pw")
        self.assertEqual(await auth.get_roles(uid), frozenset({"user"}))
        self.assertFalse(await auth.has_role(uid, "admin"))

        await auth.grant_role(uid, "admin")
        await auth.grant_role(uid, "admin")  # granting twice is harmless
        self.assertTrue(await auth.has_role(uid, "admin"))

        with self.assertRaises(ValidationError):
            await auth.grant_role(uid, "superuser")
        with self.assertRaises(RecordNotFound):
            await auth.grant_role("no-such-user", "admin")

    async def test_session_lifecycle(self):
        await auth.register("d@example.com", "pw")
        session = AuthSession()
        self.assertFalse(session.is_authenticated)
        with self.assertRaises(NotAuthenticated):
            session.require_user()

        self.assertFalse(await session.sign_in("d@example.com", "bad"))
        self.assertFalse(session.is_authenticated)

        self.assertTrue(await session.sign_in("d@example.com", "pw"))
        self.assertTrue(session.is_authenticated)
        self.assertFalse(session.is_admin)
        with self.assertRaises(AccessDenied):
            session.require_admin()

        session.sign_out()
        self.assertIsNone(session.user_id)
        self.assertEqual(session.roles, frozenset())

    async def test_admin_session(self):
        session = await self.make_session("admin@example.com", admin=True)
        self.assertTrue(session.is_admin)
        self.assertEqual(session.require_admin(), session.user_id)

    async def test_profile_read_and_update(self):
        session = await self.make_session("e@example.com", full_name="Budi")
        profile = await auth.get_profile(session)
        self.assertEqual(profile.full_name, "Budi")
        self.assertIsNone(profile.address)

        updated = await auth.update_profile(session, address="Jl. Merdeka 1")
        self.assertEqual(updated.address, "Jl. Merdeka 1")
        self.assertEqual(updated.full_name, "Budi")

        with self.assertRaises(NotAuthenticated):
            await auth.get_profile(AuthSession())

    async def test_set_admin_script(self):
        uid = await auth.register("f@example.com", "pw")
        self.assertTrue(await set_admin.set_admin("f@example.com"))
        self.assertTrue(await auth.has_role(uid, "admin"))
        self.assertFalse(await set_admin.set_admin("missing@example.com"))
