"""
Script to create a local profile and print a development bearer token.

Only meaningful while ``NOTEGEN_IDENTITY_JWKS_URL`` is unset (tokens are
signed with the local secret).
"""

import argparse
import asyncio
from datetime import timedelta
from typing import Optional

from app.core.auth import create_jwt
from app.core.config import get_settings
from app.core.database import get_session_context, init_db
from app.models.base import utcnow
from app.models.profile import UserProfile

settings = get_settings()


async def upsert_profile(uid: str, email: Optional[str], premium: bool) -> None:
    await init_db()
    async with get_session_context() as session:
        profile = await session.get(UserProfile, uid)
        if profile is None:
            profile = UserProfile(id=uid, email=email, is_premium=premium)
            print(f"Created profile: {uid}")
        else:
            profile.email = email or profile.email
            profile.is_premium = premium
            profile.updated_at = utcnow()
            print(f"Updated profile: {uid}")
        session.add(profile)


def main() -> None:
    parser = argparse.ArgumentParser(description="Issue a local development token.")
    parser.add_argument("--uid", required=True, help="Subject identifier")
    parser.add_argument("--email", default=None, help="Email claim and profile email")
    parser.add_argument("--name", default=None, help="Display name claim")
    parser.add_argument("--premium", action="store_true", help="Mark the profile premium")
    parser.add_argument("--hours", type=int, default=1, help="Token lifetime in hours")
    args = parser.parse_args()

    if settings.identity_jwks_url:
        parser.error("identity_jwks_url is set; local tokens would be rejected")

    asyncio.run(upsert_profile(args.uid, args.email, args.premium))
    print(
        create_jwt(
            args.uid,
            email=args.email,
            name=args.name,
            expires_delta=timedelta(hours=args.hours),
        )
    )


if __name__ == "__main__":
    main()
