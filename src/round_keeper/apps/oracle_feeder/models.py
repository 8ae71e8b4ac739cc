"""Configuration model for the oracle price feeder."""

from dataclasses import dataclass

from round_keeper.core.retry import RetryPolicy

_DEFAULT_INTERVAL = 10.0
_DEFAULT_PRICE_DECIMALS = 8
_DEFAULT_MAX_NONCE_GAP = 10
_DEFAULT_PUSH_LEAD = 30
_DEFAULT_BUFFER_SECONDS = 30
_DEFAULT_MAX_PRICE_AGE = 60
_DEFAULT_RATE_LIMIT_ATTEMPTS = 5
_DEFAULT_RATE_LIMIT_DELAY = 2.0
_RATE_LIMIT_BACKOFF = 2.0


@dataclass(frozen=True)
class FeederConfig:
    """Configuration for the price feeder loop.

    Args:
        symbol: Exchange symbol to price (e.g. ``"BTCUSD"``).
        asset: Human-readable asset name for logs.
        interval_seconds: Seconds between pushes.
        price_decimals: Fixed-point decimals the oracle expects.
        max_nonce_gap: Pending-over-confirmed gap that triggers a nonce reset.
        window_gated: Only push around the current round's lock time.
        push_lead_seconds: How long before lock time a gated push may start.
        buffer_seconds: Execution window length, ending a gated push window.
        max_price_age_seconds: Oracle answers younger than this that the
            prediction contract has not consumed yet are not replaced.
        rate_limit_max_attempts: Price fetch attempts when rate limited.
        rate_limit_base_delay: First backoff delay; doubles on each retry.

    """

    symbol: str = "BTCUSD"
    asset: str = "bitcoin"
    interval_seconds: float = _DEFAULT_INTERVAL
    price_decimals: int = _DEFAULT_PRICE_DECIMALS
    max_nonce_gap: int = _DEFAULT_MAX_NONCE_GAP
    window_gated: bool = False
    push_lead_seconds: int = _DEFAULT_PUSH_LEAD
    buffer_seconds: int = _DEFAULT_BUFFER_SECONDS
    max_price_age_seconds: int = _DEFAULT_MAX_PRICE_AGE
    rate_limit_max_attempts: int = _DEFAULT_RATE_LIMIT_ATTEMPTS
    rate_limit_base_delay: float = _DEFAULT_RATE_LIMIT_DELAY

    def __post_init__(self) -> None:
        """Validate intervals and scaling."""
        if self.interval_seconds <= 0:
            msg = f"interval_seconds must be positive, got {self.interval_seconds}"
            raise ValueError(msg)
        if self.price_decimals < 0:
            msg = f"price_decimals must be non-negative, got {self.price_decimals}"
            raise ValueError(msg)
        if self.max_nonce_gap < 0:
            msg = f"max_nonce_gap must be non-negative, got {self.max_nonce_gap}"
            raise ValueError(msg)

    @property
    def rate_limit_policy(self) -> RetryPolicy:
        """Return the exponential backoff used for rate-limited price fetches."""
        return RetryPolicy(
            max_attempts=self.rate_limit_max_attempts,
            base_delay=self.rate_limit_base_delay,
            backoff_factor=_RATE_LIMIT_BACKOFF,
        )
