#!/usr/bin/env python
"""Seed the development database with a few users and print bearer tokens.

Constraints:
- Refuses to run in staging or prod (TETHER_ENV check)
- Idempotent via ON CONFLICT DO NOTHING on username
- Never runs automatically (manual invocation only)

Usage:
    cd python && DATABASE_URL=... python ../scripts/seed_dev.py
"""

import sys
from datetime import UTC, datetime, timedelta
from uuid import UUID

import jwt
from sqlalchemy import select

from tether.config import Environment, get_settings
from tether.db.engine import create_db_engine
from tether.db.models import Base, User, utcnow
from tether.db.session import create_session_factory, upsert_insert

SEED_USERS = {
    "ada": UUID("00000000-0000-4000-8000-00000000000a"),
    "grace": UUID("00000000-0000-4000-8000-00000000000b"),
    "linus": UUID("00000000-0000-4000-8000-00000000000c"),
}
TOKEN_TTL = timedelta(days=7)


def mint_token(settings, user_id: UUID) -> str:
    claims = {"sub": str(user_id), "exp": datetime.now(UTC) + TOKEN_TTL}
    if settings.token_issuer:
        claims["iss"] = settings.token_issuer
    if settings.token_audience:
        claims["aud"] = settings.token_audience
    return jwt.encode(claims, settings.effective_token_secret, algorithm="HS256")


def main():
    settings = get_settings()
    if settings.tether_env not in (Environment.LOCAL, Environment.TEST):
        print(f"ERROR: seed_dev.py refuses to run in TETHER_ENV={settings.tether_env.value}")
        sys.exit(1)

    engine = create_db_engine(settings.database_url)
    # Local convenience; deployed schemas come from alembic
    Base.metadata.create_all(engine)

    db = create_session_factory(engine)()
    try:
        for username, user_id in SEED_USERS.items():
            db.execute(
                upsert_insert(db, User)
                .values(id=user_id, username=username, created_at=utcnow())
                .on_conflict_do_nothing(index_elements=["username"])
            )
        db.commit()

        rows = db.execute(
            select(User.id, User.username).where(User.username.in_(list(SEED_USERS)))
        ).all()
    finally:
        db.close()

    url = settings.database_url
    print(f"Database: {url.split('@')[1] if '@' in url else url}")
    print(f"TETHER_ENV: {settings.tether_env.value}")
    print()
    for row in sorted(rows, key=lambda r: r.username):
        print(f"{row.username:<8} {row.id}")
        print(f"  Authorization: Bearer {mint_token(settings, row.id)}")


if __name__ == "__main__":
    main()
