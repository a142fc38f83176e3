"""
Seed script: create the tables, a college and its first admin.

Run with env set:
  SEED_COLLEGE_NAME="Sample Engineering College"
  SEED_ADMIN_EMAIL=admin@college.edu
  SEED_ADMIN_PASSWORD=YourSecurePassword

  python -m collegedesk.db.seed_college

Safe to run again: existing college, identity and admins row are reused.
"""
import asyncio

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from collegedesk.auth.identity_provider import IdentityProvider
from collegedesk.auth.models import AdminAccount
from collegedesk.core.config import settings
from collegedesk.core.models import College
from collegedesk.db.session import AsyncSessionLocal, Base, engine

DEFAULT_COLLEGE_NAME = "Demo College"
DEFAULT_ADMIN_FULL_NAME = "College Admin"


async def create_tables() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def seed_college(db: AsyncSession) -> College:
    # 1. Ensure the college exists
    name = settings.seed_college_name or DEFAULT_COLLEGE_NAME
    result = await db.execute(select(College).where(College.name == name))
    college = result.scalar_one_or_none()
    if not college:
        college = College(name=name)
        db.add(college)
        await db.commit()
        await db.refresh(college)
        print("Created college:", name, college.id)
    else:
        print("College already exists:", name, college.id)

    email = settings.seed_admin_email
    password = settings.seed_admin_password
    if not email or not password:
        print("No SEED_ADMIN_EMAIL/SEED_ADMIN_PASSWORD; skipping admin user.")
        return college

    # 2. Identity + profile
    provider = IdentityProvider(db)
    identity = await provider.get_identity_by_email(email)
    if identity is None:
        identity = await provider.admin_create_identity(
            email,
            password,
            email_confirm=True,
            user_metadata={"full_name": DEFAULT_ADMIN_FULL_NAME},
        )
        print("Created identity:", email)
    else:
        print("Identity already exists:", email)

    # 3. admins row
    result = await db.execute(
        select(AdminAccount).where(
            AdminAccount.user_id == identity.id,
            AdminAccount.college_id == college.id,
        )
    )
    if result.scalar_one_or_none() is None:
        db.add(AdminAccount(user_id=identity.id, email=email, college_id=college.id))
        await db.commit()
        print("Granted admin role in", name)

    print("College seed done.")
    return college


async def main() -> None:
    await create_tables()
    async with AsyncSessionLocal() as db:
        try:
            await seed_college(db)
        except Exception as e:
            await db.rollback()
            print("Error:", e)
            raise


if __name__ == "__main__":
    asyncio.run(main())
