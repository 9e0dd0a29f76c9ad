import unittest

from dbcase import ADMIN_EMAIL, ADMIN_PASSWORD, DatabaseTestCase
from db import crud
from db.models import UserRole, UserStatus
from shop import auth
from shop.errors import UnauthorizedError, ValidationError


class PasswordTestCase(unittest.TestCase):
    def test_hash_and_verify(self):
        hashed = auth.hash_password("correct horse")
        self.assertTrue(hashed.startswith("$2b$"))
        self.assertNotIn("correct horse", hashed)
        self.assertTrue(auth.verify_password("correct horse", hashed))
        self.assertFalse(auth.verify_password("wrong horse", hashed))

    def test_salts_differ(self):
        self.assertNotEqual(auth.hash_password("pw1234"), auth.hash_password("pw1234"))

    def test_malformed_hash_never_verifies(self):
        self.assertFalse(auth.verify_password("pw", "garbage"))
        self.assertFalse(auth.verify_password("pw", "pbkdf2_sha256$1$00$00"))


class AuthTestCase(DatabaseTestCase):
    async def test_sign_up_creates_pending_user(self):
        user = await auth.sign_up(self.db, " new@example.com ", "secret123")
        self.assertEqual(user.email, "new@example.com")
        self.assertEqual(user.status, UserStatus.PENDING)
        self.assertEqual(user.role, UserRole.USER)
        self.assertIsNone(user.approved_at)
        self.assertFalse(await crud.email_available(self.db, "new@example.com"))

    async def test_sign_up_validation(self):
        with self.assertRaises(ValidationError):
            await auth.sign_up(self.db, "not-an-email", "secret123")
        with self.assertRaises(ValidationError):
            await auth.sign_up(self.db, "short@example.com", "123")

        await auth.sign_up(self.db, "dup@example.com", "secret123")
        with self.assertRaises(ValidationError) as ctx:
            await auth.sign_up(self.db, "dup@example.com", "other-secret")
        self.assertEqual(str(ctx.exception), "Email already registered")

    async def test_sign_in(self):
        created = await auth.sign_up(self.db, "login@example.com", "secret123")
        user = await auth.sign_in(self.db, "login@example.com", "secret123")
        self.assertEqual(user.id, created.id)
        # pending accounts can sign in; ordering is gated elsewhere
        self.assertEqual(user.status, UserStatus.PENDING)

        self.assertIsNone(await auth.sign_in(self.db, "login@example.com", "wrong"))
        self.assertIsNone(await auth.sign_in(self.db, "nobody@example.com", "secret123"))

    async def test_admin_sign_in(self):
        user = await auth.admin_sign_in(self.db, ADMIN_EMAIL, ADMIN_PASSWORD)
        self.assertTrue(user.is_admin)
        self.assertTrue(await auth.is_admin(self.db, user.id))

        await auth.sign_up(self.db, "cust@example.com", "secret123")
        with self.assertRaises(UnauthorizedError):
            await auth.admin_sign_in(self.db, "cust@example.com", "secret123")
        with self.assertRaises(UnauthorizedError):
            await auth.admin_sign_in(self.db, ADMIN_EMAIL, "wrong-password")

    async def test_ensure_admin_is_idempotent(self):
        again = await auth.ensure_admin(self.db, ADMIN_EMAIL, ADMIN_PASSWORD)
        self.assertEqual(again.id, self.admin.id)
        self.assertEqual(self.admin.status, UserStatus.APPROVED)
        admins = [u for u in await crud.list_users(self.db) if u.role == UserRole.ADMIN]
        self.assertEqual(len(admins), 1)


if __name__ == "__main__":
    unittest.main()
