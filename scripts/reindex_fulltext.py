"""
Run a fulltext reindex from the command line, as the given administrator.

Usage:
    python scripts/reindex_fulltext.py --admin-email admin@example.com
    python scripts/reindex_fulltext.py --admin-email admin@example.com --batch-size 500 --batch 3

Requires an ARQ worker (arq reindexer.worker.WorkerSettings) to process
the extraction jobs.
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from arq.connections import create_pool

from reindexer.config import settings
from reindexer.database import async_session_maker
from reindexer.services.auth_service import UserPrincipalResolver, get_user_by_email
from reindexer.services.document_store import (
    PrivilegedDocumentSession,
    SqlDocumentQuery,
    SqlTransactionManager,
)
from reindexer.services.document_types import get_document_types
from reindexer.services.fulltext_dispatcher import ArqFulltextDispatcher
from reindexer.services.reindex_service import FulltextReindexer
from reindexer.worker import parse_redis_url


async def reindex_fulltext(admin_email: str, batch_size: int, batch: int) -> Optional[str]:
    """Run one reindex; None when the administrator account does not exist."""
    pool = await create_pool(parse_redis_url(settings.redis_url))
    try:
        async with async_session_maker() as db:
            user = await get_user_by_email(db, admin_email)
            if user is None:
                print(f"User {admin_email} not found", file=sys.stderr)
                return None

            types = get_document_types()
            reindexer = FulltextReindexer(
                principals=UserPrincipalResolver(user),
                documents=SqlDocumentQuery(async_session_maker),
                session=PrivilegedDocumentSession(db, types),
                transactions=SqlTransactionManager(db),
                fulltext_info=types,
                dispatcher=ArqFulltextDispatcher(pool),
                repository_name=settings.repository_name,
                default_batch_size=settings.reindex_default_batch_size,
            )
            result = await reindexer.reindex(batch_size, batch)
            await db.commit()
            return result
    finally:
        await pool.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Fulltext reindex of the repository")
    parser.add_argument("--admin-email", required=True)
    parser.add_argument("--batch-size", type=int, default=0)
    parser.add_argument("--batch", type=int, default=0, help="only this batch (starts at 1)")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    result = asyncio.run(reindex_fulltext(args.admin_email, args.batch_size, args.batch))
    if result is None:
        sys.exit(1)
    print(result)


if __name__ == "__main__":
    main()
