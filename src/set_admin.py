#!/usr/bin/env python3
"""
Grant the admin role to a registered user.

Usage: python src/set_admin.py <email>
The user has to sign out and sign in again for the role to take effect.
"""

import asyncio
import sys

from db.auth import find_user_by_email, grant_role
from db.errors import StoreError


async def set_admin(email: str) -> bool:
    user = await find_user_by_email(email)
    if user is None:
        print(f"User not found: {email}")
        return False
    try:
        await grant_role(user.id, "admin")
    except StoreError as e:
        print(f"Error setting admin role: {e}")
        return False
    print(f"Admin role granted to {user.email} ({user.id})")
    return True


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: python set_admin.py <user_email>")
        sys.exit(1)

    if not asyncio.run(set_admin(sys.argv[1])):
        sys.exit(1)
