import zlib

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

# Namespace for job-creation locks, so they never collide with other
# advisory lock users sharing the database (Postgres takes two int4 keys).
JOB_CREATION_LOCK_NAMESPACE = 84728472


def business_lock_key(business_id: str) -> int:
    # crc32 fits the signed int4 second key once shifted into range
    return zlib.crc32(business_id.encode("utf-8")) - 2**31


async def lock_business_for_job_creation(session: AsyncSession, business_id: str) -> bool:
    """
    Serializes job creation for one business.

    Takes a Postgres transaction-level advisory lock, released automatically
    on commit or rollback, so the active-job count, the token count and the
    insert happen as one unit per business. Other dialects (SQLite in tests)
    have no advisory locks and run unserialized; returns False there.
    """
    if session.get_bind().dialect.name != "postgresql":
        return False

    await session.execute(
        text("SELECT pg_advisory_xact_lock(:namespace, :key)"),
        {"namespace": JOB_CREATION_LOCK_NAMESPACE, "key": business_lock_key(business_id)},
    )
    return True
