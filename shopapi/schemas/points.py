from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from shopapi.core.grades import GradeLevel


class UserBalance(BaseModel):
    """잔액 및 등급 캐시"""

    model_config = ConfigDict(from_attributes=True)

    points: int
    grade_level: GradeLevel


class SettlementOrder(BaseModel):
    """정산에 필요한 주문 정보"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    total_price: int
    status: str


class PointSummaryResponse(BaseModel):
    """내 포인트/등급 요약"""

    points: int = Field(..., description="현재 포인트 잔액")
    grade_level: GradeLevel = Field(..., description="현재 등급")
    lifetime_purchase: int = Field(..., description="누적 구매액 (결제 완료 주문)")
    earn_rate: Decimal = Field(..., description="현재 등급 적립률")
    next_grade: Optional[GradeLevel] = Field(None, description="다음 등급")
    amount_to_next_grade: Optional[int] = Field(None, description="다음 등급까지 필요 금액")


class PointLedgerEntry(BaseModel):
    """포인트 원장 항목"""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="원장 항목 ID")
    order_id: Optional[int] = Field(None, description="주문 ID")
    delta: int = Field(..., description="포인트 변화량")
    reason: str = Field(..., description="거래 사유")
    created_at: Optional[datetime] = Field(None, description="생성 시간")


class PointLedgerResponse(BaseModel):
    """포인트 원장 조회 응답"""

    balance: int = Field(..., description="현재 잔액")
    entries: List[PointLedgerEntry] = Field(..., description="원장 항목 목록")
    total_count: int = Field(..., description="전체 항목 수")
    has_next: bool = Field(..., description="다음 페이지 존재 여부")


class AdminPointsAdjustmentRequest(BaseModel):
    """관리자 포인트 조정 요청"""

    user_id: int = Field(..., gt=0, description="사용자 ID")
    amount: int = Field(..., description="조정할 포인트 (양수: 추가, 음수: 차감)")
    reason: str = Field(..., min_length=1, max_length=255, description="조정 사유")


class PointsAdjustmentResponse(BaseModel):
    """관리자 포인트 조정 결과"""

    user_id: int
    delta: int
    balance_after: int


class PointsIntegrityCheckResponse(BaseModel):
    """잔액과 원장 합계 비교 결과"""

    status: str = Field(..., description="검증 상태 (OK, OFFSET)")
    user_id: int
    ledger_total: int = Field(..., description="원장 delta 합계")
    recorded_balance: int = Field(..., description="users.points 값")
    offset: int = Field(..., description="recorded_balance - ledger_total")
    entry_count: int
