from abc import ABC
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy.orm import Session

T = TypeVar("T")
SchemaType = TypeVar("SchemaType", bound=BaseModel)


class BaseRepository(Generic[T, SchemaType], ABC):
    """모든 리포지토리의 베이스 클래스 - Pydantic 응답 보장

    조회/쓰기 메서드는 선택 인자 ``tx`` 로 호출자의 트랜잭션 세션을 받습니다.
    생략하면 생성 시 주입된 세션을 사용합니다.
    """

    def __init__(
        self, model_class: Type[T], schema_class: Type[SchemaType], db: Session
    ):
        self.model_class = model_class
        self.schema_class = schema_class
        self.db = db

    def _session(self, tx: Optional[Session]) -> Session:
        return tx if tx is not None else self.db

    def _to_schema(self, model_instance: Any) -> Optional[SchemaType]:
        """SQLAlchemy 모델을 Pydantic 스키마로 변환"""
        if model_instance is None:
            return None
        return self.schema_class.model_validate(model_instance)

    def get_by_id(self, id: Any, tx: Optional[Session] = None) -> Optional[SchemaType]:
        """ID로 조회 - Pydantic 스키마 반환"""
        model_instance = (
            self._session(tx)
            .query(self.model_class)
            .filter(getattr(self.model_class, "id") == id)
            .first()
        )
        return self._to_schema(model_instance)

    def find_all(
        self,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        tx: Optional[Session] = None,
    ) -> List[SchemaType]:
        """조건에 맞는 모든 레코드 조회 - Pydantic 스키마 리스트 반환"""
        query = self._filtered_query(filters, tx)

        if order_by and hasattr(self.model_class, order_by):
            query = query.order_by(getattr(self.model_class, order_by).desc())

        if offset:
            query = query.offset(offset)

        if limit:
            query = query.limit(limit)

        return [self._to_schema(instance) for instance in query.all()]

    def count(
        self, filters: Optional[Dict[str, Any]] = None, tx: Optional[Session] = None
    ) -> int:
        """레코드 수 조회"""
        return self._filtered_query(filters, tx).count()

    def _filtered_query(
        self, filters: Optional[Dict[str, Any]], tx: Optional[Session]
    ):
        query = self._session(tx).query(self.model_class)
        if filters:
            for key, value in filters.items():
                if hasattr(self.model_class, key):
                    query = query.filter(getattr(self.model_class, key) == value)
        return query
