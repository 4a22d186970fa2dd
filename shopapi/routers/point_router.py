"""
포인트 API 라우터

- GET  /users/me/points: 내 포인트/등급 요약
- GET  /users/me/points/ledger: 내 포인트 거래 내역
- POST /points/admin/adjust: 관리자 포인트 조정
- GET  /points/admin/integrity/{user_id}: 잔액/원장 정합성 확인
"""

import logging

from fastapi import APIRouter, Depends, Path, Query

from shopapi.core.security import admin_required, get_current_user
from shopapi.deps import get_point_service
from shopapi.schemas.points import (
    AdminPointsAdjustmentRequest,
    PointLedgerResponse,
    PointsAdjustmentResponse,
    PointsIntegrityCheckResponse,
    PointSummaryResponse,
)
from shopapi.schemas.user import User as UserSchema
from shopapi.services.point_service import PointService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["points"])


@router.get("/users/me/points", response_model=PointSummaryResponse)
def get_my_points(
    current_user: UserSchema = Depends(get_current_user),
    point_service: PointService = Depends(get_point_service),
) -> PointSummaryResponse:
    """내 포인트 잔액, 등급, 누적 구매액, 적립률, 다음 등급 정보"""
    return point_service.get_summary(current_user.id)


@router.get("/users/me/points/ledger", response_model=PointLedgerResponse)
def get_my_ledger(
    limit: int = Query(50, ge=1, le=100, description="페이지 크기"),
    offset: int = Query(0, ge=0, description="오프셋"),
    current_user: UserSchema = Depends(get_current_user),
    point_service: PointService = Depends(get_point_service),
) -> PointLedgerResponse:
    return point_service.get_user_ledger(current_user.id, limit=limit, offset=offset)


@router.post("/points/admin/adjust", response_model=PointsAdjustmentResponse)
def adjust_points(
    request: AdminPointsAdjustmentRequest,
    admin: UserSchema = Depends(admin_required),
    point_service: PointService = Depends(get_point_service),
) -> PointsAdjustmentResponse:
    return point_service.admin_adjust_points(admin.id, request)


@router.get(
    "/points/admin/integrity/{user_id}", response_model=PointsIntegrityCheckResponse
)
def check_integrity(
    user_id: int = Path(..., gt=0),
    admin: UserSchema = Depends(admin_required),
    point_service: PointService = Depends(get_point_service),
) -> PointsIntegrityCheckResponse:
    return point_service.verify_user_integrity(user_id)
