"""Script to seed the admin user into the server database.

Usage: python scripts/seed_admin.py [email] [password]
"""

import asyncio
import sys
from pathlib import Path

# Add the parent directory to the path so we can import from papertrail
sys.path.insert(0, str(Path(__file__).parent.parent))

from papertrail.config.settings import settings
from papertrail.db.db import init_db, close_db
from papertrail.db.seed import ensure_seed_admin_user


async def main(argv):
    if len(argv) > 1:
        settings.SEED_ADMIN_EMAIL = argv[1]
    if len(argv) > 2:
        settings.SEED_ADMIN_PASSWORD = argv[2]

    await init_db()
    try:
        await ensure_seed_admin_user()
        print(f"Admin user ready: {settings.SEED_ADMIN_EMAIL}")
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main(sys.argv))
