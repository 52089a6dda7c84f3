#!/usr/bin/env python
"""
Create tables and seed plans, a super admin and optional demo tenants.

Usage:
    python scripts/seed.py --admin-email ops@example.com --admin-password 'S3cure!pass'
    python scripts/seed.py --scenario demo
"""

import argparse
import asyncio
import sys

from app.core.database import async_session_factory, create_tables
from app.core.errors import ConflictError
from app.modules.subscriptions.services import SubscriptionService
from app.modules.tenants.schemas import TenantCreate
from app.modules.tenants.services import TenantService
from app.modules.users.services import UserService


DEMO_TENANTS = [
    {"name": "Maple Immigration Consultants", "domain": "maple-immigration"},
    {"name": "Northern Pathways Law", "domain": "northern-pathways"},
]
DEMO_PASSWORD = "Demo!Passw0rd"


async def seed_default(admin_email: str, admin_password: str) -> None:
    async with async_session_factory() as session:
        plans = await SubscriptionService(session).seed_default_plans()
        print(f"Plans created: {', '.join(p.name for p in plans) or 'none (already present)'}")

        try:
            admin = await UserService(session).create_super_admin(admin_email, admin_password)
            print(f"Created super admin: {admin.email}")
        except ConflictError:
            print(f"Super admin already exists: {admin_email}")
        await session.commit()


async def seed_demo() -> None:
    async with async_session_factory() as session:
        tenants = TenantService(session)
        for data in DEMO_TENANTS:
            try:
                tenant, admin = await tenants.create_tenant(
                    TenantCreate(
                        name=data["name"],
                        domain=data["domain"],
                        admin_email=f"admin@{data['domain']}.example.com",
                        admin_password=DEMO_PASSWORD,
                    )
                )
            except ConflictError:
                print(f"Tenant already exists: {data['domain']}")
                continue
            print(f"Created tenant: {tenant.name} (admin: {admin.email if admin else '-'})")
        await session.commit()


async def main(args: argparse.Namespace) -> None:
    await create_tables()
    if args.scenario == "default":
        await seed_default(args.admin_email, args.admin_password)
    elif args.scenario == "demo":
        await seed_default(args.admin_email, args.admin_password)
        await seed_demo()
    else:
        print(f"Unknown scenario: {args.scenario}")
        print("Available scenarios: default, demo")
        sys.exit(1)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create tables and seed the database")
    parser.add_argument("--scenario", "-s", default="default", help="default or demo")
    parser.add_argument("--admin-email", default="superadmin@example.com")
    parser.add_argument("--admin-password", default="ChangeMe!2024")
    asyncio.run(main(parser.parse_args()))
