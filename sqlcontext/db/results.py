"""Helpers for consuming streaming cursors sequentially."""

from typing import Any, Iterator, List, Optional

import pandas as pd
from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import SQLAlchemyError

from sqlcontext.exceptions import DatabaseError


def iter_rows(result: CursorResult, limit: Optional[int] = None) -> Iterator[Any]:
    """Yield rows one at a time, closing the cursor when done.

    Args:
        result: Cursor to drain.
        limit: Stop after this many rows. The cursor is closed early.
    """
    count = 0
    try:
        for row in result:
            if limit is not None and count >= limit:
                break
            count += 1
            yield row
    except SQLAlchemyError as e:
        raise DatabaseError.statement(
            f"Reading streaming result failed after {count} rows: {e}",
            cause=e,
            operation="fetch",
            rows_read=count,
        ) from e
    finally:
        result.close()


def iter_chunks(result: CursorResult, chunk_size: int = 10000) -> Iterator[pd.DataFrame]:
    """Yield the cursor's rows as DataFrame chunks.

    Args:
        result: Cursor to drain.
        chunk_size: Maximum rows per chunk.

    Yields:
        DataFrames with at most ``chunk_size`` rows, in cursor order.
    """
    effective_chunk_size = max(1, chunk_size)
    columns: List[str] = list(result.keys())
    try:
        while True:
            rows = result.fetchmany(effective_chunk_size)
            if not rows:
                break
            yield pd.DataFrame(rows, columns=columns)
    except SQLAlchemyError as e:
        raise DatabaseError.statement(
            f"Reading streaming result failed: {e}",
            cause=e,
            operation="fetch",
        ) from e
    finally:
        result.close()
