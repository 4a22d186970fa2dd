from typing import Callable

from dependency_injector.wiring import Provider, inject
from fastapi import Depends
from sqlalchemy.orm import Session

from shopapi.containers import Container
from shopapi.database.session import get_db
from shopapi.services.order_service import OrderService
from shopapi.services.point_service import PointService


@inject
def get_point_service(
    db: Session = Depends(get_db),
    factory: Callable[..., PointService] = Depends(
        Provider[Container.services.point_service]
    ),
) -> PointService:
    return factory(db=db)


@inject
def get_order_service(
    db: Session = Depends(get_db),
    factory: Callable[..., OrderService] = Depends(
        Provider[Container.services.order_service]
    ),
) -> OrderService:
    # 주문 서비스와 정산 서비스가 같은 요청 세션을 공유
    return factory(db=db, point_service__db=db)
