"""Create or promote an admin user"""
import argparse
import asyncio
import getpass

from sqlalchemy import select

from dataconfirm.core.database import get_session_local, init_db, close_db
from dataconfirm.core.security import get_password_hash
from dataconfirm.models.user import User, UserRole


async def create_admin(email: str, password: str, full_name: str = None, agency: str = None) -> User:
    """Create the admin, or reset password and role if the email exists"""
    await init_db()
    session_local = get_session_local()
    async with session_local() as db:
        result = await db.execute(
            select(User).where(User.email == email.lower())
        )
        user = result.scalar_one_or_none()

        if user:
            user.hashed_password = get_password_hash(password)
            user.role = UserRole.ADMIN
            user.is_active = True
            print(f"Updated existing user as admin: {user.email}")
        else:
            user = User(
                email=email.lower(),
                full_name=full_name,
                agency=agency,
                hashed_password=get_password_hash(password),
                role=UserRole.ADMIN,
                is_active=True,
            )
            db.add(user)
            print(f"Created admin user: {user.email}")

        await db.commit()
    await close_db()
    return user


def main():
    parser = argparse.ArgumentParser(description="Create or promote an admin user")
    parser.add_argument("email")
    parser.add_argument("--name", dest="full_name")
    parser.add_argument("--agency")
    args = parser.parse_args()

    password = getpass.getpass("Password: ")
    if len(password) < 8:
        parser.error("password must be at least 8 characters")

    asyncio.run(create_admin(args.email, password, args.full_name, args.agency))


if __name__ == "__main__":
    main()
