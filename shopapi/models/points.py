"""
포인트 거래 원장 모델

잔액(users.points)이 기준 값이고, 이 테이블은 잔액 변동의 감사 기록이자
멱등성 키 역할을 합니다. 레코드는 추가만 되며 수정/삭제되지 않습니다.
"""

from enum import Enum

from sqlalchemy import BigInteger, Column, ForeignKey, String
from sqlalchemy.schema import UniqueConstraint

from shopapi.models.base import BaseModel, BigIntPK


class PointReason(str, Enum):
    """포인트 거래 사유"""

    EARN_PURCHASE = "EARN_PURCHASE"
    SPEND_ORDER = "SPEND_ORDER"
    REVERT_CANCEL = "REVERT_CANCEL"
    ADMIN_ADJUST = "ADMIN_ADJUST"


class PointTransaction(BaseModel):
    __tablename__ = "point_transactions"
    __table_args__ = (
        # 주문당 사유별 최대 1건 - 적립/차감/회수 재시도 안전성의 근거
        UniqueConstraint("user_id", "order_id", "reason", name="uq_point_tx_user_order_reason"),
    )

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    # 관리자 조정은 주문과 무관 (NULL은 유니크 제약에서 서로 다른 값으로 취급)
    order_id = Column(BigInteger, ForeignKey("orders.id"), nullable=True)
    delta = Column(BigInteger, nullable=False)
    reason = Column(String(30), nullable=False)
