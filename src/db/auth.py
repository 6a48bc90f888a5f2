from __future__ import annotations

import hashlib
import hmac
import secrets
import sqlite3
from typing import FrozenSet, Optional

from db import models
from db.database import connect, new_id, now_iso
from db.errors import DuplicateRecord, RecordNotFound, ValidationError
from utils.logger import get_logger

_logger = get_logger(__name__)

_PBKDF2_ROUNDS = 120_000


def hash_password(pwd: str, salt: Optional[str] = None) -> str:
    """Return 'salt$hexdigest' for the given password (PBKDF2-SHA256)."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", pwd.encode("utf-8"), salt.encode("utf-8"), _PBKDF2_ROUNDS
    )
    return f"{salt}${digest.hex()}"


def verify_password(pwd: str, stored: str) -> bool:
    salt, _, _digest = stored.partition("$")
    return hmac.compare_digest(hash_password(pwd, salt), stored)


# ---------------------------
# Registration & Login
# ---------------------------


async def register(email: str, pwd: str, full_name: Optional[str] = None) -> str:
    """
    Create a new account with its profile and the default 'user' role.
    Returns the new user id.
    """
    email = (email or "").strip().lower()
    if not email or not pwd:
        raise ValidationError("Email and password are required.")

    uid = new_id()
    ts = now_iso()
    async with connect() as conn:
        try:
            await conn.execute(
                "INSERT INTO users(id, email, pwd_hash, created_at) VALUES (?, ?, ?, ?);",
                (uid, email, hash_password(pwd), ts),
            )
        except sqlite3.IntegrityError as e:
            raise DuplicateRecord(f"Email {email} is already registered.") from e
        await conn.execute(
            "INSERT INTO profiles(id, full_name, created_at, updated_at) VALUES (?, ?, ?, ?);",
            (uid, full_name, ts, ts),
        )
        await conn.execute(
            "INSERT INTO user_roles(user_id, role) VALUES (?, 'user');", (uid,)
        )
        await conn.commit()
    _logger.info(f"Registered user {email}")
    return uid


async def authenticate(email: str, pwd: str) -> Optional[models.User]:
    """Return the User if email/password match; otherwise None."""
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT id, email, pwd_hash FROM users WHERE email = ?;",
            ((email or "").strip().lower(),),
        )
        row = await cur.fetchone()
        await cur.close()
    if not row or not verify_password(pwd or "", row["pwd_hash"]):
        return None
    return models.User(id=row["id"], email=row["email"])


async def find_user_by_email(email: str) -> Optional[models.User]:
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT id, email FROM users WHERE email = ?;",
            ((email or "").strip().lower(),),
        )
        row = await cur.fetchone()
        await cur.close()
    return models.User(id=row["id"], email=row["email"]) if row else None


# ---------------------------
# Roles
# ---------------------------


async def get_roles(user_id: str) -> FrozenSet[str]:
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT role FROM user_roles WHERE user_id = ?;", (user_id,)
        )
        rows = await cur.fetchall()
        await cur.close()
    return frozenset(r["role"] for r in rows)


async def has_role(user_id: str, role: str) -> bool:
    return role in await get_roles(user_id)


async def grant_role(user_id: str, role: str) -> None:
    """Give a user a role. Operator-level call: no session check."""
    if role not in models.ROLES:
        raise ValidationError(f"Unknown role: {role}")
    async with connect() as conn:
        try:
            await conn.execute(
                "INSERT OR IGNORE INTO user_roles(user_id, role) VALUES (?, ?);",
                (user_id, role),
            )
        except sqlite3.IntegrityError as e:
            raise RecordNotFound(f"No user with id {user_id}.") from e
        await conn.commit()
    _logger.info(f"Granted role '{role}' to {user_id}")


# ---------------------------
# Profiles
# ---------------------------


async def get_profile(session) -> Optional[models.Profile]:
    uid = session.require_user()
    async with connect() as conn:
        cur = await conn.execute(
            "SELECT id, full_name, phone, address FROM profiles WHERE id = ?;",
            (uid,),
        )
        row = await cur.fetchone()
        await cur.close()
    if not row:
        return None
    return models.Profile(
        id=row["id"],
        full_name=row["full_name"],
        phone=row["phone"],
        address=row["address"],
    )


async def update_profile(
    session,
    full_name: Optional[str] = None,
    phone: Optional[str] = None,
    address: Optional[str] = None,
) -> Optional[models.Profile]:
    """Update only the provided profile fields of the session user."""
    uid = session.require_user()
    updates = {
        k: v
        for k, v in (("full_name", full_name), ("phone", phone), ("address", address))
        if v is not None
    }
    if updates:
        assignments = ", ".join(f"{k} = ?" for k in updates)
        async with connect() as conn:
            await conn.execute(
                f"UPDATE profiles SET {assignments}, updated_at = ? WHERE id = ?;",
                (*updates.values(), now_iso(), uid),
            )
            await conn.commit()
    return await get_profile(session)
