from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

from shopapi.database.connection import SessionLocal


def get_db():
    db = SessionLocal()
    try:
        yield db
    except Exception:
        if db.in_transaction():
            db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """하나의 논리 작업을 단일 트랜잭션으로 실행

    이미 자동 시작된 트랜잭션(선행 조회)이 있으면 그 트랜잭션에 합류해 함께 커밋합니다.
    예외 발생 시 전체 롤백 후 재발생합니다.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
