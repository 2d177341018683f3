"""
Chunked batch runner shared by product batch updates and inventory batch
adjustments.

Each item runs in its own transaction: a failure rolls back that item only
and is reported alongside the successes.
"""
from __future__ import annotations

import logging
from typing import Callable, Iterable

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 10
MAX_BATCH_ITEMS = 500

# Errors that mean "this item is bad", not "the server is broken"
ITEM_ERRORS = (ValueError, LookupError, SQLAlchemyError)


def chunked(items: list, size: int) -> Iterable[list]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def process_in_batches(
    items: list,
    handler: Callable[[dict], dict],
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> dict:
    """
    Run handler over items chunk by chunk.

    Returns:
        {"successful": [...handler results], "failed": [{"index", "item", "error"}],
         "totalProcessed", "totalSuccess", "totalFailed"}
    """
    successful: list = []
    failed: list = []
    processed = 0

    for chunk in chunked(items, max(1, chunk_size)):
        for item in chunk:
            index = processed
            processed += 1
            try:
                successful.append(handler(item))
            except ITEM_ERRORS as e:
                db.session.rollback()
                logger.info("Batch item %s failed: %s", index, e)
                failed.append({"index": index, "item": item, "error": str(e)})

    return {
        "successful": successful,
        "failed": failed,
        "totalProcessed": processed,
        "totalSuccess": len(successful),
        "totalFailed": len(failed),
    }
