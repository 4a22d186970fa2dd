"""
포인트 정산 서비스

주문 상태 전이에 따라 포인트를 차감/적립/회수하고 등급 캐시를 동기화합니다.

- 주문 생성 시 포인트 사용 → SPEND_ORDER
- 결제 완료 → EARN_PURCHASE (이번 주문 반영 전 등급의 적립률)
- 주문 취소 → REVERT_CANCEL (적립분만 회수, 사용 포인트는 환급하지 않음)

모든 진입점은 (user, order, reason) 원장 기록 기준으로 멱등하며,
tx 를 넘기면 호출자의 트랜잭션에 합류하고 넘기지 않으면 자체 트랜잭션을 커밋합니다.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy.orm import Session

from shopapi.core.exceptions import (
    InsufficientPointsError,
    InsufficientPointsForRevertError,
    OrderNotFoundError,
    ValidationError,
)
from shopapi.core.grades import GradeResolver, compute_earn
from shopapi.database.session import transaction
from shopapi.models.order import OrderStatus
from shopapi.models.points import PointReason
from shopapi.repositories.points_repository import PointsRepository
from shopapi.schemas.points import (
    AdminPointsAdjustmentRequest,
    PointLedgerResponse,
    PointsAdjustmentResponse,
    PointsIntegrityCheckResponse,
    PointSummaryResponse,
)

logger = logging.getLogger(__name__)


class PointService:
    """포인트/등급 정산 비즈니스 로직"""

    def __init__(
        self,
        db: Session,
        grade_resolver: GradeResolver,
        ledger_page_max: int = 100,
    ):
        self.db = db
        self.points_repo = PointsRepository(db)
        self.grades = grade_resolver
        self.ledger_page_max = ledger_page_max

    @contextmanager
    def _unit_of_work(self, tx: Optional[Session]) -> Iterator[Session]:
        # 호출자 트랜잭션이 있으면 합류 (커밋/롤백은 호출자 책임)
        if tx is not None:
            yield tx
            return
        with transaction(self.db) as session:
            yield session

    def _sync_grade(self, user_id: int, tx: Session) -> None:
        lifetime = self.points_repo.sum_lifetime_completed_purchases(user_id, tx)
        level, _ = self.grades.resolve_tier(lifetime)
        self.points_repo.sync_grade_cache(user_id, level, tx)

    # 조회
    def get_summary(self, user_id: int) -> PointSummaryResponse:
        """내 포인트/등급 요약

        Raises:
            UserNotFoundError: 사용자가 없는 경우
        """
        balance = self.points_repo.get_balance(user_id, self.db)
        lifetime = self.points_repo.sum_lifetime_completed_purchases(user_id, self.db)
        level, tier = self.grades.resolve_tier(lifetime)
        next_info = self.grades.next_tier_info(lifetime)

        return PointSummaryResponse(
            points=balance.points,
            grade_level=level,
            lifetime_purchase=lifetime,
            earn_rate=tier.earn_rate,
            next_grade=next_info.next,
            amount_to_next_grade=next_info.amount_needed,
        )

    def get_user_ledger(
        self, user_id: int, limit: int = 50, offset: int = 0
    ) -> PointLedgerResponse:
        limit = min(limit, self.ledger_page_max)
        ledger = self.points_repo.get_user_ledger(user_id, limit, offset, self.db)
        logger.info(f"Retrieved ledger for user {user_id}: {ledger.total_count} entries")
        return ledger

    def verify_user_integrity(self, user_id: int) -> PointsIntegrityCheckResponse:
        result = self.points_repo.verify_integrity_for_user(user_id, self.db)
        if result.status != "OK":
            logger.warning(
                f"Ledger/balance offset for user {user_id}: {result.offset} "
                f"(balance={result.recorded_balance}, ledger={result.ledger_total})"
            )
        return result

    # 주문 생성 → 포인트 사용
    def spend_on_order_placement(
        self,
        user_id: int,
        order_id: int,
        amount: int,
        tx: Optional[Session] = None,
    ) -> None:
        """주문 생성 시 포인트 차감

        Raises:
            ValidationError: amount 가 음수
            InsufficientPointsError: 잔액 부족 (감싸는 트랜잭션 전체 롤백 대상)
        """
        if amount is None or amount == 0:
            return
        if amount < 0:
            raise ValidationError(
                "Point spend amount must not be negative", details={"amount": amount}
            )

        with self._unit_of_work(tx) as session:
            if self.points_repo.has_ledger_entry(
                user_id, order_id, PointReason.SPEND_ORDER, session
            ):
                logger.info(f"Spend already recorded for order {order_id}, skipping")
                return

            if not self.points_repo.decrement_if_sufficient(user_id, amount, session):
                logger.warning(
                    f"Insufficient points for order {order_id}: user {user_id} requested {amount}"
                )
                raise InsufficientPointsError(
                    details={"user_id": user_id, "order_id": order_id, "amount": amount}
                )

            if not self.points_repo.append_ledger_entry(
                user_id, order_id, -amount, PointReason.SPEND_ORDER, session
            ):
                # 동시 재시도가 먼저 기록함 → 이번 차감은 되돌림
                self.points_repo.increment(user_id, amount, session)
                return

        logger.info(f"Spent {amount} points for order {order_id} (user {user_id})")

    # 결제 완료 → 적립
    def accrue_on_payment(self, order_id: int, tx: Optional[Session] = None) -> None:
        """결제 완료 주문 포인트 적립 및 등급 캐시 동기화

        적립률은 이번 주문을 제외한 누적액 기준 등급으로 계산합니다.

        Raises:
            OrderNotFoundError: 주문이 없는 경우
        """
        with self._unit_of_work(tx) as session:
            order = self.points_repo.get_order(order_id, session)
            if order is None:
                raise OrderNotFoundError(order_id)
            if order.status != OrderStatus.COMPLETED_PAYMENT.value:
                logger.info(f"Order {order_id} is {order.status}, accrual skipped")
                return

            if self.points_repo.has_ledger_entry(
                order.user_id, order.id, PointReason.EARN_PURCHASE, session
            ):
                logger.info(f"Accrual already recorded for order {order_id}, skipping")
                return

            lifetime_before = self.points_repo.sum_lifetime_completed_purchases(
                order.user_id, session, exclude_order_id=order.id
            )
            level_before, tier_before = self.grades.resolve_tier(lifetime_before)
            earn = compute_earn(order.total_price, tier_before.earn_rate)

            if earn > 0 and self.points_repo.append_ledger_entry(
                order.user_id, order.id, earn, PointReason.EARN_PURCHASE, session
            ):
                self.points_repo.increment(order.user_id, earn, session)
                logger.info(
                    f"Earned {earn} points for order {order_id} "
                    f"(user {order.user_id}, grade {level_before.value}, rate {tier_before.earn_rate})"
                )

            self._sync_grade(order.user_id, session)

    # 취소 → 적립 회수
    def revert_on_cancellation(self, order_id: int, tx: Optional[Session] = None) -> None:
        """취소 주문의 적립 포인트 회수 및 등급 캐시 동기화

        주문이 없으면 조용히 반환합니다 (존재 여부는 주문 서비스가 이미 검증).
        사용(SPEND_ORDER) 포인트는 환급하지 않습니다.

        Raises:
            InsufficientPointsForRevertError: 적립분을 이미 사용해 회수할 수 없는 경우
        """
        with self._unit_of_work(tx) as session:
            order = self.points_repo.get_order(order_id, session)
            if order is None:
                return

            already_reverted = self.points_repo.has_ledger_entry(
                order.user_id, order.id, PointReason.REVERT_CANCEL, session
            )
            if not already_reverted:
                self._revert_earned(order.user_id, order.id, session)
            else:
                logger.info(f"Revert already recorded for order {order_id}, resyncing grade only")

            self._sync_grade(order.user_id, session)

    def _revert_earned(self, user_id: int, order_id: int, tx: Session) -> None:
        earned = self.points_repo.get_earned_amount(user_id, order_id, tx)
        if earned <= 0:
            return

        if not self.points_repo.decrement_if_sufficient(user_id, earned, tx):
            logger.warning(
                f"Cannot revert {earned} earned points for order {order_id}: user {user_id} balance too low"
            )
            raise InsufficientPointsForRevertError(
                details={"user_id": user_id, "order_id": order_id, "earned": earned}
            )

        if not self.points_repo.append_ledger_entry(
            user_id, order_id, -earned, PointReason.REVERT_CANCEL, tx
        ):
            self.points_repo.increment(user_id, earned, tx)
            return
        logger.info(f"Reverted {earned} earned points for order {order_id} (user {user_id})")

    # 관리자
    def admin_adjust_points(
        self, admin_id: int, request: AdminPointsAdjustmentRequest
    ) -> PointsAdjustmentResponse:
        """관리자 포인트 조정 (ADMIN_ADJUST, 주문 무관)

        Raises:
            ValidationError: amount 가 0
            UserNotFoundError: 대상 사용자가 없는 경우
            InsufficientPointsError: 차감 조정 시 잔액 부족
        """
        if request.amount == 0:
            raise ValidationError("Adjustment amount must not be zero")

        with transaction(self.db) as session:
            self.points_repo.get_balance(request.user_id, session)
            if request.amount > 0:
                self.points_repo.increment(request.user_id, request.amount, session)
            elif not self.points_repo.decrement_if_sufficient(
                request.user_id, -request.amount, session
            ):
                raise InsufficientPointsError(
                    message="Insufficient points for adjustment",
                    details={"user_id": request.user_id, "amount": request.amount},
                )
            self.points_repo.append_ledger_entry(
                request.user_id, None, request.amount, PointReason.ADMIN_ADJUST, session
            )
            balance = self.points_repo.get_balance(request.user_id, session)

        action = "Added" if request.amount > 0 else "Deducted"
        logger.info(
            f"{action} {abs(request.amount)} points for user {request.user_id} "
            f"by admin {admin_id}: {request.reason}"
        )
        return PointsAdjustmentResponse(
            user_id=request.user_id, delta=request.amount, balance_after=balance.points
        )
