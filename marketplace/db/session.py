from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from marketplace.core.config import settings


def _enable_sqlite_transactions(engine: AsyncEngine) -> None:
    """Let SQLAlchemy own BEGIN so savepoints work and writers serialize.

    pysqlite defers BEGIN until the first DML statement, which breaks
    SAVEPOINT and lets two transactions read the same rows before either
    writes. Starting every transaction with BEGIN IMMEDIATE takes the write
    lock up front.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_engine_for_url(database_url: str, **kwargs) -> AsyncEngine:
    if database_url.startswith("sqlite"):
        engine = create_async_engine(
            database_url,
            echo=settings.api_debug,
            connect_args={"check_same_thread": False},
            **kwargs,
        )
        _enable_sqlite_transactions(engine)
        return engine

    return create_async_engine(
        database_url,
        echo=settings.api_debug,
        pool_pre_ping=True,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        **kwargs,
    )


engine = create_engine_for_url(settings.database_url)

AsyncSessionLocal = async_sessionmaker(
    engine,
    expire_on_commit=False,
)
