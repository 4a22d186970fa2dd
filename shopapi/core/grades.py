"""
회원 등급 계산

누적 구매액(결제 완료 주문 합계)으로 등급과 적립률을 결정합니다.
등급 테이블은 프로세스 시작 시 한 번 검증되며 이후 변경되지 않습니다.
"""

from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from pydantic import BaseModel


class GradeLevel(str, Enum):
    """회원 등급"""

    GREEN = "GREEN"
    ORANGE = "ORANGE"
    RED = "RED"
    BLACK = "BLACK"
    VIP = "VIP"


class GradeConfigurationError(ValueError):
    """등급 테이블이 유효하지 않을 때 (시작 시점에만 발생)"""


@dataclass(frozen=True)
class GradeTier:
    level: GradeLevel
    min_amount: int
    earn_rate: Decimal


class NextGradeInfo(BaseModel):
    """다음 등급 및 필요 누적액 (최상위 등급이면 둘 다 None)"""

    next: Optional[GradeLevel] = None
    amount_needed: Optional[int] = None


DEFAULT_GRADE_TIERS: Tuple[GradeTier, ...] = (
    GradeTier(GradeLevel.GREEN, 0, Decimal("0.01")),
    GradeTier(GradeLevel.ORANGE, 100_000, Decimal("0.02")),
    GradeTier(GradeLevel.RED, 300_000, Decimal("0.03")),
    GradeTier(GradeLevel.BLACK, 500_000, Decimal("0.04")),
    GradeTier(GradeLevel.VIP, 1_000_000, Decimal("0.05")),
)


def validate_tiers(tiers: Iterable[GradeTier]) -> Tuple[GradeTier, ...]:
    """등급 테이블 검증 후 min_amount 오름차순으로 정렬해 반환

    Raises:
        GradeConfigurationError: 빈 테이블, 바닥 등급 누락, 중복 등급,
            임계값 중복(엄격 증가 위반), 음수 적립률
    """
    ordered = tuple(sorted(tiers, key=lambda t: t.min_amount))
    if not ordered:
        raise GradeConfigurationError("Grade table is empty")

    floors = [t for t in ordered if t.min_amount == 0]
    if len(floors) != 1:
        raise GradeConfigurationError(
            f"Exactly one floor tier with min_amount=0 is required, found {len(floors)}"
        )
    if ordered[0].min_amount != 0:
        raise GradeConfigurationError("Tier thresholds must not be negative")

    levels = [t.level for t in ordered]
    if len(set(levels)) != len(levels):
        raise GradeConfigurationError(f"Duplicate grade levels: {levels}")

    for prev, cur in zip(ordered, ordered[1:]):
        if cur.min_amount <= prev.min_amount:
            raise GradeConfigurationError(
                f"Thresholds must be strictly increasing: {prev.level.value}={prev.min_amount}, "
                f"{cur.level.value}={cur.min_amount}"
            )

    for tier in ordered:
        if tier.earn_rate < 0:
            raise GradeConfigurationError(
                f"Earn rate must not be negative: {tier.level.value}={tier.earn_rate}"
            )

    return ordered


def tiers_from_settings(entries) -> Tuple[GradeTier, ...]:
    """Settings.GRADE_TIERS 항목을 GradeTier로 변환"""
    try:
        tiers = [
            GradeTier(
                level=GradeLevel(entry.level.upper()),
                min_amount=int(entry.min_amount),
                earn_rate=Decimal(str(entry.earn_rate)),
            )
            for entry in entries
        ]
    except ValueError as e:
        raise GradeConfigurationError(f"Invalid grade tier entry: {e}") from e
    return validate_tiers(tiers)


def compute_earn(total_price: int, earn_rate: Decimal) -> int:
    """floor(max(0, total_price) * earn_rate)"""
    base = Decimal(max(0, total_price))
    return int((base * earn_rate).to_integral_value(rounding=ROUND_FLOOR))


class GradeResolver:
    """누적 구매액 → 등급/적립률 계산기 (I/O 없음)"""

    def __init__(self, tiers: Iterable[GradeTier] = DEFAULT_GRADE_TIERS):
        self._tiers: Tuple[GradeTier, ...] = validate_tiers(tiers)
        self._by_level = {t.level: t for t in self._tiers}

    @property
    def tiers(self) -> List[GradeTier]:
        return list(self._tiers)

    def resolve_tier(self, lifetime_amount: int) -> Tuple[GradeLevel, GradeTier]:
        """min_amount <= lifetime_amount 인 등급 중 임계값이 가장 큰 등급

        음수 금액은 바닥 등급으로 처리합니다.
        """
        current = self._tiers[0]
        for tier in self._tiers:
            if lifetime_amount >= tier.min_amount:
                current = tier
            else:
                break
        return current.level, current

    def earn_rate(self, level: GradeLevel) -> Decimal:
        return self._by_level[GradeLevel(level)].earn_rate

    def next_tier_info(self, lifetime_amount: int) -> NextGradeInfo:
        level, _ = self.resolve_tier(lifetime_amount)
        idx = [t.level for t in self._tiers].index(level)
        if idx == len(self._tiers) - 1:
            return NextGradeInfo()

        next_tier = self._tiers[idx + 1]
        return NextGradeInfo(
            next=next_tier.level,
            amount_needed=max(0, next_tier.min_amount - lifetime_amount),
        )
