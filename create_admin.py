"""
Quick script to check and add an admin user
"""
import asyncio
import getpass
from sqlalchemy import select

from casamia.database.core import AsyncSessionLocal
from casamia.database.models import User, Role
from casamia.services.user_service import create_user, normalize_email


async def check_and_add_admin():
    print("Enter the admin email:")
    email = normalize_email(input())

    async with AsyncSessionLocal() as session:
        # Check if user exists
        stmt = select(User).where(User.email == email)
        result = await session.execute(stmt)
        user = result.scalar_one_or_none()

        if user:
            print(f"✅ User found: {user.name} ({user.role})")
        else:
            print("❌ User not found. Creating admin...")

            print("Enter the full name:")
            name = input().strip()
            password = getpass.getpass("Password (min 6 characters): ")
            if len(password) < 6:
                print("❌ Password is too short")
                return

            user = await create_user(session, name=name, email=email, password=password, role=Role.admin.value)
            print(f"✅ Admin created: {user.name} (ID: {user.id})")

        # Show all admins
        stmt = select(User).where(User.role == Role.admin.value, User.is_deleted == False)
        result = await session.execute(stmt)
        admins = result.scalars().all()

        print("\n📋 Admins in database:")
        for u in admins:
            print(f"  - {u.name} ({u.email}, active: {u.is_active})")

if __name__ == "__main__":
    asyncio.run(check_and_add_admin())
