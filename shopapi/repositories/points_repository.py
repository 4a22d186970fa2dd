"""
포인트 리포지토리 - 잔액/등급 캐시/포인트 원장 접근

핵심 특징:
- 모든 메서드는 호출자의 트랜잭션 세션(tx)을 명시적으로 받아 여러 작업을 하나의 트랜잭션으로 묶을 수 있습니다
- 잔액 차감은 단일 조건부 UPDATE (WHERE points >= amount) 로 처리해 동시 요청에서도 음수 잔액이 생기지 않습니다
- 원장 기록은 (user_id, order_id, reason) 유니크 제약으로 중복이 차단되며, 제약 위반은 "이미 처리됨"으로 취급합니다
"""

import logging
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.util import identity_key

from shopapi.core.exceptions import UserNotFoundError
from shopapi.core.grades import GradeLevel
from shopapi.models.order import Order, OrderStatus
from shopapi.models.points import PointReason, PointTransaction
from shopapi.models.user import User
from shopapi.repositories.base import BaseRepository
from shopapi.schemas.points import (
    PointLedgerEntry,
    PointLedgerResponse,
    PointsIntegrityCheckResponse,
    SettlementOrder,
    UserBalance,
)

logger = logging.getLogger(__name__)

# 누적 구매액(등급 산정)에 반영되는 주문 상태
COUNTED_ORDER_STATUSES = (OrderStatus.COMPLETED_PAYMENT.value,)


class PointsRepository(BaseRepository[PointTransaction, PointLedgerEntry]):
    def __init__(self, db: Session):
        super().__init__(PointTransaction, PointLedgerEntry, db)

    @staticmethod
    def _expire_cached_user(session: Session, user_id: int, attribute: str) -> None:
        # 세션에 로드된 User 객체가 있으면 다음 접근 시 DB 값을 다시 읽도록 만료
        cached = session.identity_map.get(identity_key(User, user_id))
        if cached is not None:
            session.expire(cached, [attribute])

    def get_balance(self, user_id: int, tx: Optional[Session] = None) -> UserBalance:
        """현재 잔액과 등급 캐시 (캐시된 ORM 객체가 아닌 DB 값을 읽음)

        Raises:
            UserNotFoundError: 사용자가 없는 경우
        """
        row = self._session(tx).execute(
            select(User.points, User.grade_level).where(User.id == user_id)
        ).first()
        if row is None:
            raise UserNotFoundError(user_id)
        return UserBalance(points=row.points, grade_level=row.grade_level)

    def sum_lifetime_completed_purchases(
        self,
        user_id: int,
        tx: Optional[Session] = None,
        exclude_order_id: Optional[int] = None,
    ) -> int:
        """결제 완료 주문의 total_price 합계 (exclude_order_id 주문 제외)"""
        stmt = select(func.coalesce(func.sum(Order.total_price), 0)).where(
            Order.user_id == user_id,
            Order.status.in_(COUNTED_ORDER_STATUSES),
        )
        if exclude_order_id is not None:
            stmt = stmt.where(Order.id != exclude_order_id)
        return int(self._session(tx).execute(stmt).scalar_one())

    def get_order(
        self, order_id: int, tx: Optional[Session] = None
    ) -> Optional[SettlementOrder]:
        row = self._session(tx).execute(
            select(Order.id, Order.user_id, Order.total_price, Order.status).where(
                Order.id == order_id
            )
        ).first()
        if row is None:
            return None
        return SettlementOrder(
            id=row.id, user_id=row.user_id, total_price=row.total_price, status=row.status
        )

    def has_ledger_entry(
        self,
        user_id: int,
        order_id: int,
        reason: PointReason,
        tx: Optional[Session] = None,
    ) -> bool:
        """같은 주문/사유의 원장 기록 존재 여부 (멱등성 체크용)"""
        found = self._session(tx).execute(
            select(PointTransaction.id).where(
                PointTransaction.user_id == user_id,
                PointTransaction.order_id == order_id,
                PointTransaction.reason == PointReason(reason).value,
            )
        ).first()
        return found is not None

    def decrement_if_sufficient(
        self, user_id: int, amount: int, tx: Optional[Session] = None
    ) -> bool:
        """잔액이 amount 이상일 때만 차감 (단일 조건부 UPDATE)

        Returns:
            bool: 차감 성공 여부
        """
        session = self._session(tx)
        result = session.execute(
            update(User)
            .where(User.id == user_id, User.points >= amount)
            .values(points=User.points - amount)
            .execution_options(synchronize_session=False)
        )
        self._expire_cached_user(session, user_id, "points")
        return result.rowcount == 1

    def increment(self, user_id: int, amount: int, tx: Optional[Session] = None) -> None:
        session = self._session(tx)
        result = session.execute(
            update(User)
            .where(User.id == user_id)
            .values(points=User.points + amount)
            .execution_options(synchronize_session=False)
        )
        self._expire_cached_user(session, user_id, "points")
        if result.rowcount != 1:
            raise UserNotFoundError(user_id)

    def append_ledger_entry(
        self,
        user_id: int,
        order_id: Optional[int],
        delta: int,
        reason: PointReason,
        tx: Optional[Session] = None,
    ) -> bool:
        """원장 기록 추가 (SAVEPOINT 안에서 실행)

        Returns:
            bool: 새로 기록했으면 True, 같은 (user, order, reason) 기록이
                이미 있어 유니크 제약에 걸렸으면 False
        """
        session = self._session(tx)
        entry = PointTransaction(
            user_id=user_id,
            order_id=order_id,
            delta=delta,
            reason=PointReason(reason).value,
        )
        try:
            with session.begin_nested():
                session.add(entry)
        except IntegrityError:
            if order_id is not None and self.has_ledger_entry(
                user_id, order_id, reason, session
            ):
                logger.info(
                    f"Ledger entry already recorded: user={user_id} order={order_id} "
                    f"reason={PointReason(reason).value}"
                )
                return False
            raise
        return True

    def sync_grade_cache(
        self, user_id: int, level: GradeLevel, tx: Optional[Session] = None
    ) -> None:
        session = self._session(tx)
        session.execute(
            update(User)
            .where(User.id == user_id)
            .values(grade_level=GradeLevel(level).value)
            .execution_options(synchronize_session=False)
        )
        self._expire_cached_user(session, user_id, "grade_level")

    def get_earned_amount(
        self, user_id: int, order_id: int, tx: Optional[Session] = None
    ) -> int:
        """해당 주문으로 적립된 포인트 (없으면 0) - 취소 시 회수량 계산용"""
        delta = self._session(tx).execute(
            select(PointTransaction.delta).where(
                PointTransaction.user_id == user_id,
                PointTransaction.order_id == order_id,
                PointTransaction.reason == PointReason.EARN_PURCHASE.value,
            )
        ).scalar_one_or_none()
        return int(delta or 0)

    def get_user_ledger(
        self,
        user_id: int,
        limit: int = 50,
        offset: int = 0,
        tx: Optional[Session] = None,
    ) -> PointLedgerResponse:
        """사용자 포인트 원장 조회 (최신순 페이징)"""
        session = self._session(tx)
        total_count = self.count({"user_id": user_id}, tx=session)
        model_instances = (
            session.query(self.model_class)
            .filter(self.model_class.user_id == user_id)
            .order_by(self.model_class.id.desc())
            .limit(limit)
            .offset(offset)
            .all()
        )

        return PointLedgerResponse(
            balance=self.get_balance(user_id, session).points,
            entries=[self._to_schema(instance) for instance in model_instances],
            total_count=total_count,
            has_next=offset + limit < total_count,
        )

    def verify_integrity_for_user(
        self, user_id: int, tx: Optional[Session] = None
    ) -> PointsIntegrityCheckResponse:
        """원장 delta 합계와 저장된 잔액 비교

        원장 밖에서 지급된 잔액(초기 지급 등)은 offset 으로 보고합니다.
        """
        session = self._session(tx)
        balance = self.get_balance(user_id, session)
        ledger_total, entry_count = session.execute(
            select(
                func.coalesce(func.sum(PointTransaction.delta), 0),
                func.count(PointTransaction.id),
            ).where(PointTransaction.user_id == user_id)
        ).one()

        offset = balance.points - int(ledger_total)
        return PointsIntegrityCheckResponse(
            status="OK" if offset == 0 else "OFFSET",
            user_id=user_id,
            ledger_total=int(ledger_total),
            recorded_balance=balance.points,
            offset=offset,
            entry_count=int(entry_count),
        )
