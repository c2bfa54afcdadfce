from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from storefront.errors import StorageUnavailable

_DEPTH_KEY = "smart_transaction_depth"


def in_unit_of_work(session: Session) -> bool:
    return session.info.get(_DEPTH_KEY, 0) > 0


@contextmanager
def smart_transaction(session: Session) -> Iterator[Session]:
    """
    Run a unit of work on the given Session: commit on normal exit, roll back
    on any exception.

    The outermost call owns a real transaction. Calls nested inside it get a
    SAVEPOINT (begin_nested) so an inner failure can be handled without
    discarding the outer work. A transaction the session autobegan for plain
    reads is closed first so that the outermost unit always commits.

    Usage:
        with smart_transaction(db):
            ... DB work ...
    """
    depth = session.info.get(_DEPTH_KEY, 0)
    if depth:
        cm = session.begin_nested()
    else:
        if session.in_transaction():
            session.commit()
        cm = session.begin()

    session.info[_DEPTH_KEY] = depth + 1
    try:
        with cm:
            if not depth:
                session.connection(execution_options={"write_lock": True})
            yield session
    except OperationalError as e:
        raise StorageUnavailable(f"Storage unavailable: {e.orig}") from e
    finally:
        session.info[_DEPTH_KEY] = depth
