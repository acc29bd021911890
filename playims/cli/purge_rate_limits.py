from datetime import timedelta

from playims.database import SessionLocal
from playims.security import utcnow
from playims.services.rate_limits import RateLimiter

RETENTION = timedelta(days=1)


def main():
    db = SessionLocal()
    try:
        purged = RateLimiter(db).purge_older_than(utcnow() - RETENTION)
    finally:
        db.close()
    print(f"Purged {purged} stale rate-limit buckets.")


if __name__ == "__main__":
    main()
