from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from shopapi.config import settings


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_pre_ping": True,  # 연결 유효성 검사
        "pool_recycle": 3600,  # 1시간마다 연결 재생성
        "connect_args": {"options": f"-csearch_path={settings.POSTGRES_SCHEMA}"},
    }


def enable_sqlite_savepoints(engine: Engine, begin_sql: str = "BEGIN") -> Engine:
    """pysqlite 의 암묵적 트랜잭션 처리를 끄고 BEGIN 을 직접 발행

    이렇게 해야 원장 기록의 begin_nested() SAVEPOINT 가 SQLite 에서도 원자적으로 동작합니다.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql(begin_sql)

    return engine


engine = create_engine(
    settings.database_url,
    **_engine_kwargs(settings.database_url),
)
if engine.dialect.name == "sqlite":
    enable_sqlite_savepoints(engine)

# Use expire_on_commit=False to avoid DetachedInstanceError when accessing
# attributes after commit within the same request scope (common FastAPI pattern).
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,
)
