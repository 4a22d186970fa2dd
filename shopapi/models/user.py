from sqlalchemy import BigInteger, Boolean, CheckConstraint, String
from sqlalchemy.orm import Mapped, mapped_column

from shopapi.core.grades import GradeLevel
from shopapi.models.base import BaseModel, BigIntPK


class User(BaseModel):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("points >= 0", name="ck_users_points_non_negative"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    nickname: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # 잔액은 포인트 원장 쓰기 경로(PointsRepository)만 변경
    points: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    # 표시용 등급 캐시, 정산 서비스의 등급 동기화만 변경
    grade_level: Mapped[str] = mapped_column(
        String(20), default=GradeLevel.GREEN.value, nullable=False
    )

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, points={self.points})>"
