from dependency_injector import containers, providers

from shopapi.config import Settings
from shopapi.core.grades import GradeResolver, tiers_from_settings
from shopapi.services.order_service import OrderService
from shopapi.services.point_service import PointService


class ConfigModule(containers.DeclarativeContainer):
    """Application configuration."""

    config = providers.Singleton(Settings)


class ServiceModule(containers.DeclarativeContainer):
    """Service layer dependencies.

    서비스는 요청마다 생성되며 요청 세션(db)은 호출 시 전달합니다:
    ``order_service(db=db, point_service__db=db)``
    """

    config = providers.DependenciesContainer()

    # 등급 테이블은 시작 시 한 번 검증 후 불변
    grade_resolver = providers.Singleton(
        GradeResolver,
        tiers=providers.Callable(tiers_from_settings, config.config.provided.GRADE_TIERS),
    )
    point_service = providers.Factory(
        PointService,
        grade_resolver=grade_resolver,
        ledger_page_max=config.config.provided.LEDGER_PAGE_MAX,
    )
    order_service = providers.Factory(
        OrderService,
        point_service=point_service,
    )


class Container(containers.DeclarativeContainer):
    """Application container."""

    wiring_config = containers.WiringConfiguration(
        modules=[
            "shopapi.deps",
        ],
    )

    config = providers.Container(ConfigModule)
    services = providers.Container(ServiceModule, config=config)
