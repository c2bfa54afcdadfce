import importlib
import logging

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from storefront.config import settings

log = logging.getLogger(__name__)

DATABASE_URL = settings.DATABASE_URL


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # handlers run in the threadpool, so a connection may hop threads
        return {
            "connect_args": {
                "check_same_thread": False,
                "timeout": settings.DB_TIMEOUT_SECONDS,
            }
        }
    return {"pool_timeout": settings.DB_TIMEOUT_SECONDS, "pool_pre_ping": True}


engine = create_engine(DATABASE_URL, future=True, echo=False, **_engine_kwargs(DATABASE_URL))
SessionLocal = sessionmaker(
    autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
)
Base = declarative_base()


if DATABASE_URL.startswith("sqlite"):

    @event.listens_for(engine, "connect")
    def _sqlite_connect(dbapi_connection, connection_record):
        # SQLAlchemy emits BEGIN itself so SAVEPOINTs nest inside a real transaction
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _sqlite_begin(conn):
        # units of work take the write lock up front; plain reads stay deferred
        if conn.get_execution_options().get("write_lock"):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")

# every module that declares tables; imported so Base.metadata is complete
MODEL_MODULES = [
    "storefront.models.product",
    "storefront.models.cart",
    "storefront.models.cart_item",
    "storefront.models.order",
    "storefront.models.payment",
    "storefront.models.review",
    "storefront.models.wishlist",
    "storefront.models.newsletter",
    "storefront.models.contact",
]


def init_db(reset: bool = False):
    """
    Create the schema for every registered model.

    With reset=True all tables are dropped first; the test-suite uses this to
    start from an empty database.
    """
    for mod in MODEL_MODULES:
        importlib.import_module(mod)

    if reset:
        log.info("Dropping all tables")
        Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    log.info("Database initialized (%d tables)", len(Base.metadata.tables))


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
