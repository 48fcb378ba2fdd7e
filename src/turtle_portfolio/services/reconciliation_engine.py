"""Reconciliation engine: one authoritative portfolio view per request."""

import logging
import time
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Iterable, Optional

from turtle_portfolio.config.settings import Settings
from turtle_portfolio.core.exceptions import PersistenceError, UpstreamUnavailableError
from turtle_portfolio.core.locks import AccountLockRegistry, get_lock_registry
from turtle_portfolio.core.timezone import now_kst
from turtle_portfolio.domain.models import (
    BrokerPosition,
    BrokerSession,
    BrokerSnapshot,
    DataSource,
    PerformanceStats,
    Portfolio,
    Position,
    RiskSettings,
)
from turtle_portfolio.domain.views import PortfolioView, ReconciliationResult
from turtle_portfolio.providers.broker_gateway import BrokerGateway
from turtle_portfolio.repositories.protocols import PortfolioRepository
from turtle_portfolio.services import risk_calculator

logger = logging.getLogger(__name__)

MESSAGE_STORE = "Broker unavailable - serving stored portfolio"
MESSAGE_PLACEHOLDER = "Broker and portfolio store unavailable - placeholder data, not persisted"


@dataclass(frozen=True)
class ReconciliationConfig:
    """Inputs the engine needs from configuration."""

    app_key: str = ""
    secret_key: str = ""
    timeout_seconds: float = 5.0
    default_initial_balance: Decimal = Decimal("50000000")
    fallback_risk_settings: RiskSettings = field(
        default_factory=lambda: RiskSettings(
            max_risk_per_trade=Decimal("100000"),
            max_total_risk=Decimal("400000"),
            min_cash_reserve=Decimal("200000"),
        )
    )
    live_view_uses_account_risk_settings: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReconciliationConfig":
        return cls(
            app_key=settings.kiwoom_app_key or "",
            secret_key=settings.kiwoom_secret_key or "",
            timeout_seconds=settings.broker_timeout_seconds,
            default_initial_balance=settings.default_initial_balance,
            fallback_risk_settings=RiskSettings(
                max_risk_per_trade=settings.fallback_max_risk_per_trade,
                max_total_risk=settings.fallback_max_total_risk,
                min_cash_reserve=settings.fallback_min_cash_reserve,
            ),
            live_view_uses_account_risk_settings=settings.live_view_uses_account_risk_settings,
        )


def build_view(portfolio: Portfolio) -> PortfolioView:
    """Derive the read view of a stored portfolio with fresh P&L and totals."""
    positions = risk_calculator.refresh_positions(portfolio.positions)
    value = risk_calculator.portfolio_value(portfolio.current_cash, positions)
    return PortfolioView(
        account_id=portfolio.account_id,
        initial_balance=portfolio.initial_balance,
        current_cash=portfolio.current_cash,
        total_equity=value,
        portfolio_value=value,
        total_return=risk_calculator.total_return(value, portfolio.initial_balance),
        current_risk_exposure=risk_calculator.current_risk_exposure(positions),
        positions=positions,
        risk_settings=portfolio.risk_settings,
        stats=portfolio.stats,
    )


class ReconciliationEngine:
    """
    Chooses between live broker data, the stored portfolio and a placeholder.

    Tiers, in order:
    1. BROKER - the gateway authenticated and returned a positive total asset
       figure.
       Cash, equity and positions come from the broker; cash and equity are
       written back to the store when it is reachable.
    2. STORE - the stored portfolio, bootstrapped on first use.
    3. PLACEHOLDER - the store itself is down; nothing is written.

    Upstream failures never escape ``reconcile``; they only pick the tier.
    Nothing is retried within one call.
    """

    def __init__(
        self,
        portfolio_repo: PortfolioRepository,
        broker_gateway: BrokerGateway,
        config: Optional[ReconciliationConfig] = None,
        lock_registry: Optional[AccountLockRegistry] = None,
    ):
        self._repo = portfolio_repo
        self._gateway = broker_gateway
        self._config = config or ReconciliationConfig()
        self._locks = lock_registry or get_lock_registry()

    def reconcile(
        self,
        account_id: str,
        session: Optional[BrokerSession] = None,
        timeout: Optional[float] = None,
    ) -> ReconciliationResult:
        """
        Produce the authoritative view for an account.

        ``session`` is reused while valid; the result carries the session to
        pass to the next call (``None`` if the broker could not be used).
        """
        snapshot, session = self._fetch_live(session, timeout or self._config.timeout_seconds)

        # Store reads and writes share the account lock with PositionService
        with self._locks.hold(account_id):
            if snapshot is not None:
                return self._merge_live(account_id, snapshot, session)

            try:
                portfolio = self._load_or_bootstrap(account_id)
            except (UpstreamUnavailableError, PersistenceError) as exc:
                logger.warning(
                    "Portfolio store unavailable for %s, serving placeholder: %s", account_id, exc
                )
                return self.placeholder(account_id)

        return ReconciliationResult(
            portfolio=build_view(portfolio),
            source=DataSource.STORE,
            broker_connected=False,
            persisted=True,
            message=MESSAGE_STORE,
            session=None,
        )

    def placeholder(self, account_id: str) -> ReconciliationResult:
        """Deterministic degraded view built from configuration only."""
        balance = self._config.default_initial_balance
        view = PortfolioView(
            account_id=account_id,
            initial_balance=balance,
            current_cash=balance,
            total_equity=balance,
            portfolio_value=balance,
            total_return=Decimal("0"),
            current_risk_exposure=Decimal("0"),
            positions=[],
            risk_settings=self._config.fallback_risk_settings,
            stats=PerformanceStats(),
        )
        return ReconciliationResult(
            portfolio=view,
            source=DataSource.PLACEHOLDER,
            broker_connected=False,
            persisted=False,
            message=MESSAGE_PLACEHOLDER,
            session=None,
        )

    def _fetch_live(
        self,
        session: Optional[BrokerSession],
        timeout: float,
    ) -> tuple[Optional[BrokerSnapshot], Optional[BrokerSession]]:
        """
        One authentication attempt (if needed) and one balance fetch.

        Both calls share ``timeout``; the balance fetch only gets what the
        authentication left over.
        """
        deadline = time.monotonic() + timeout
        try:
            if not self._gateway.is_authenticated(session):
                logger.info("Authenticating with broker")
                session = self._gateway.authenticate(
                    self._config.app_key,
                    self._config.secret_key,
                    timeout,
                )
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TimeoutError(f"broker timeout of {timeout}s spent on authentication")
            snapshot = self._gateway.get_account_balance(session, remaining)
        except (UpstreamUnavailableError, TimeoutError, ConnectionError) as exc:
            logger.warning("Broker unreachable, falling back to stored portfolio: %s", exc)
            return None, None

        # A missing or zero total asset means the reply carried no balance
        if snapshot.total_asset is None or snapshot.total_asset <= 0:
            logger.warning("Broker snapshot has no usable total asset figure, ignoring it")
            return None, session
        return snapshot, session

    def _merge_live(
        self,
        account_id: str,
        snapshot: BrokerSnapshot,
        session: Optional[BrokerSession],
    ) -> ReconciliationResult:
        stored: Optional[Portfolio] = None
        try:
            stored = self._repo.load(account_id)
            if stored is None:
                stored = Portfolio.bootstrap(account_id, self._config.default_initial_balance, now_kst())
        except UpstreamUnavailableError as exc:
            logger.warning("Portfolio store unavailable for %s, serving live data only: %s", account_id, exc)

        ledger_positions = stored.positions if stored else []
        positions = risk_calculator.refresh_positions(
            merge_positions(snapshot.positions, ledger_positions)
        )
        total_asset = snapshot.total_asset
        computed = risk_calculator.portfolio_value(snapshot.cash, positions)
        if computed != total_asset:
            logger.warning(
                "Broker totals disagree for %s: total asset %s, cash + holdings %s",
                account_id,
                total_asset,
                computed,
            )

        initial_balance = stored.initial_balance if stored else self._config.default_initial_balance
        view = PortfolioView(
            account_id=account_id,
            initial_balance=initial_balance,
            current_cash=snapshot.cash,
            total_equity=total_asset,
            portfolio_value=total_asset,
            total_return=risk_calculator.total_return(total_asset, initial_balance),
            current_risk_exposure=risk_calculator.current_risk_exposure(positions),
            positions=positions,
            risk_settings=self._live_risk_settings(stored),
            stats=snapshot.stats or (stored.stats if stored else PerformanceStats()),
        )

        persisted = stored is not None and self._persist_live(stored, snapshot)
        logger.info("Live broker data for %s: total asset %s", account_id, total_asset)
        return ReconciliationResult(
            portfolio=view,
            source=DataSource.BROKER,
            broker_connected=True,
            persisted=persisted,
            message=f"Live broker account: total asset {total_asset:,.0f} KRW",
            session=session,
        )

    def _persist_live(self, stored: Portfolio, snapshot: BrokerSnapshot) -> bool:
        """Write broker cash and equity back; failure only costs persistence."""
        updated = replace(stored, current_cash=snapshot.cash, total_equity=snapshot.total_asset)
        try:
            self._repo.save(updated)
        except (UpstreamUnavailableError, PersistenceError) as exc:
            logger.warning("Could not persist live balances for %s: %s", stored.account_id, exc)
            return False
        return True

    def _live_risk_settings(self, stored: Optional[Portfolio]) -> RiskSettings:
        if self._config.live_view_uses_account_risk_settings and stored is not None:
            return stored.risk_settings
        return self._config.fallback_risk_settings

    def _load_or_bootstrap(self, account_id: str) -> Portfolio:
        portfolio = self._repo.load(account_id)
        if portfolio is not None:
            return portfolio
        portfolio = self._repo.save(
            Portfolio.bootstrap(account_id, self._config.default_initial_balance, now_kst())
        )
        logger.info(
            "Created portfolio for %s with initial balance %s",
            account_id,
            self._config.default_initial_balance,
        )
        return portfolio


def merge_positions(
    broker_positions: Iterable[BrokerPosition],
    ledger_positions: Iterable[Position],
) -> list[Position]:
    """
    Broker holdings, carrying over entry metadata from the ledger.

    The broker decides which symbols are held and at what size and price.
    Stop loss, ATR, risk amount, entry date and signal survive from the
    ledger for symbols both sides know. Broker-only holdings carry no stop,
    ATR or entry date (``None``) and a risk amount of 0, so repeated merges
    of the same holdings are equal.
    """
    known = {p.symbol: p for p in ledger_positions}
    merged = []
    for bp in broker_positions:
        entry = known.get(bp.symbol)
        if entry is not None:
            merged.append(
                replace(
                    entry,
                    name=bp.name or entry.name,
                    quantity=bp.quantity,
                    avg_price=bp.avg_price,
                    current_price=bp.current_price,
                )
            )
        else:
            merged.append(
                Position(
                    symbol=bp.symbol,
                    name=bp.name,
                    quantity=bp.quantity,
                    avg_price=bp.avg_price,
                    current_price=bp.current_price,
                    stop_loss_price=None,
                    entry_date=None,
                    atr=None,
                    risk_amount=Decimal("0"),
                )
            )
    return merged
