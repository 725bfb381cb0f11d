from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from app.core.config import settings

_IS_SQLITE = settings.DATABASE_URL.startswith("sqlite")

# Set on the connection of a unit of work that is going to write
WRITE_INTENT = "write_intent"

engine = create_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 15} if _IS_SQLITE else {},
)

if _IS_SQLITE:
    # pysqlite defers BEGIN on its own, which breaks SAVEPOINT; let SQLAlchemy drive it.
    @event.listens_for(engine, "connect")
    def _sqlite_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        # post-commit notification sessions write while request sessions still read
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _sqlite_begin(conn):
        # SQLite ignores FOR UPDATE. A writer takes the database write lock at
        # BEGIN so a competing writer waits on the busy timeout instead of
        # failing on lock upgrade. Read-only transactions stay deferred.
        if conn.get_execution_options().get(WRITE_INTENT):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

Base = declarative_base()


def begin_write(db: Session) -> None:
    """
    Open the session's transaction with the write lock held.

    A read-only transaction left open by the caller is committed first so the
    write starts from a fresh snapshot. If the caller already staged changes
    they are kept and the current transaction is reused as is.
    """
    if db.in_transaction():
        if db.new or db.dirty or db.deleted:
            return
        db.commit()
    db.connection(execution_options={WRITE_INTENT: True})


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
