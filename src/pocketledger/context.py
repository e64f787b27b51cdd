"""Ledger context: one explicit handle holding configuration, repositories and services."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.engine import Engine

from .config import BaseConfig
from .infra.database import SessionFactory, create_db_engine, create_session_factory, init_database
from .infra.repositories import (
    SQLModelAccountRepository,
    SQLModelFixedExpenseGroupRepository,
    SQLModelMovementRepository,
    SQLModelPocketRepository,
    SQLModelPriceFetchRepository,
    SQLModelStockPriceRepository,
    SQLModelSubPocketRepository,
)
from .logging_config import get_logger, setup_logging
from .models.common import utcnow
from .services import (
    AccountService,
    AlphaVantagePriceSource,
    BalancePropagator,
    InvestmentService,
    MovementService,
    PriceCache,
    PriceSource,
    SubPocketService,
    SummaryService,
)

logger = get_logger("context")


@dataclass
class LedgerContext:
    """Everything one user session needs, wired together once."""

    config: BaseConfig
    engine: Engine
    session_factory: SessionFactory
    user_id: int

    # Repositories
    account_repo: SQLModelAccountRepository
    pocket_repo: SQLModelPocketRepository
    sub_pocket_repo: SQLModelSubPocketRepository
    group_repo: SQLModelFixedExpenseGroupRepository
    movement_repo: SQLModelMovementRepository
    stock_price_repo: SQLModelStockPriceRepository
    fetch_repo: SQLModelPriceFetchRepository

    # Services
    propagator: BalancePropagator
    movements: MovementService
    accounts: AccountService
    sub_pockets: SubPocketService
    investments: InvestmentService
    summary: SummaryService


def create_ledger_context(
    config: Optional[BaseConfig] = None,
    user_id: int = 1,
    price_source: Optional[PriceSource] = None,
    clock: Optional[Callable[[], datetime]] = None,
    configure_logging: bool = True,
) -> LedgerContext:
    """Create and initialize a ledger context for ``user_id``.

    Logging is configured from ``config`` unless ``configure_logging`` is off,
    which leaves handler setup to an embedding application.
    """

    if config is None:
        config = BaseConfig()
    if configure_logging:
        setup_logging(config)
    clock = clock or utcnow

    engine = create_db_engine(config)
    init_database(engine)
    session_factory = create_session_factory(engine)

    account_repo = SQLModelAccountRepository(session_factory)
    pocket_repo = SQLModelPocketRepository(session_factory)
    sub_pocket_repo = SQLModelSubPocketRepository(session_factory)
    group_repo = SQLModelFixedExpenseGroupRepository(session_factory)
    movement_repo = SQLModelMovementRepository(session_factory)
    stock_price_repo = SQLModelStockPriceRepository(session_factory)
    fetch_repo = SQLModelPriceFetchRepository(session_factory)

    propagator = BalancePropagator(
        account_repo=account_repo,
        pocket_repo=pocket_repo,
        sub_pocket_repo=sub_pocket_repo,
        user_id=user_id,
    )
    movements = MovementService(
        movement_repo=movement_repo,
        account_repo=account_repo,
        pocket_repo=pocket_repo,
        sub_pocket_repo=sub_pocket_repo,
        propagator=propagator,
        user_id=user_id,
        clock=clock,
    )
    accounts = AccountService(
        account_repo=account_repo,
        pocket_repo=pocket_repo,
        sub_pocket_repo=sub_pocket_repo,
        movements=movements,
        propagator=propagator,
        user_id=user_id,
    )
    sub_pockets = SubPocketService(
        sub_pocket_repo=sub_pocket_repo,
        pocket_repo=pocket_repo,
        group_repo=group_repo,
        user_id=user_id,
    )

    if price_source is None:
        price_source = AlphaVantagePriceSource(
            api_key=config.PRICE_API_KEY,
            base_url=config.PRICE_API_URL,
            timeout=config.PRICE_API_TIMEOUT,
        )
    investments = InvestmentService(
        cache=PriceCache(config.PRICE_CACHE_FILE),
        source=price_source,
        stock_price_repo=stock_price_repo,
        fetch_repo=fetch_repo,
        cache_ttl=config.PRICE_CACHE_TTL,
        rate_limit_window=config.PRICE_RATE_LIMIT_WINDOW,
        clock=clock,
    )
    summary = SummaryService(accounts=accounts, sub_pockets=sub_pockets, investments=investments)

    logger.debug("Ledger context created", extra={"user_id": user_id, "database_url": config.DATABASE_URL})

    return LedgerContext(
        config=config,
        engine=engine,
        session_factory=session_factory,
        user_id=user_id,
        account_repo=account_repo,
        pocket_repo=pocket_repo,
        sub_pocket_repo=sub_pocket_repo,
        group_repo=group_repo,
        movement_repo=movement_repo,
        stock_price_repo=stock_price_repo,
        fetch_repo=fetch_repo,
        propagator=propagator,
        movements=movements,
        accounts=accounts,
        sub_pockets=sub_pockets,
        investments=investments,
        summary=summary,
    )


__all__ = ["LedgerContext", "create_ledger_context"]
