"""
Recommendation Engine - Configuration.

============================================================
PURPOSE
============================================================
All configuration for the recommendation engine and its
collaborators. Values come from the environment (a .env file is
loaded first) with documented defaults.

CRITICAL CONSTRAINTS:
- No automatic retries anywhere
- Every network collaborator has a bounded timeout

============================================================
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from dotenv import load_dotenv

from storage.database import DatabaseConfig


# ============================================================
# RISK CONFIGURATION
# ============================================================

@dataclass
class RiskConfig:
    """
    Bracket and sizing parameters.

    Distances are in pips and strictly decrease with risk level.
    """

    stop_distance_pips: Dict[str, float] = field(default_factory=lambda: {
        "low": 30.0,
        "medium": 20.0,
        "high": 10.0,
    })
    """Stop distance per risk level."""

    reward_multiplier: float = 2.0
    """Take-profit distance as a multiple of the stop distance."""

    pip_value_per_unit: float = 10.0 / 100000
    """
    Account-currency value of one pip per unit.

    Fixed approximation for USD-quoted majors; not adjusted for
    crosses or JPY pairs.
    """

    default_units: float = 100.0
    """Units of a heuristic draft."""

    heuristic_confidence: float = 0.5
    """Confidence of a heuristic draft."""


# ============================================================
# RECOMMENDATION CONFIGURATION
# ============================================================

@dataclass
class RecommendationConfig:
    """Storage-side recommendation behavior."""

    default_ttl_minutes: int = 240
    """Time-to-live when the draft does not set one."""

    default_list_limit: int = 200
    """Limit used when a list call passes none or an invalid one."""

    max_list_limit: int = 500
    """Upper bound of any list call."""

    candle_granularity: str = "M5"
    """Broker granularity fetched for market context."""

    candle_count: int = 50
    """Candles fetched per instrument for market context."""


# ============================================================
# COLLABORATOR CONFIGURATION
# ============================================================

@dataclass
class BrokerConfig:
    """OANDA v20 REST connection."""

    api_key: str = ""
    account_id: str = ""
    live: bool = False
    """Use the live trading host instead of practice."""

    timeout_seconds: float = 10.0

    @property
    def base_url(self) -> str:
        if self.live:
            return "https://api-fxtrade.oanda.com"
        return "https://api-fxpractice.oanda.com"


@dataclass
class NewsConfig:
    """Brave news search connection."""

    api_key: str = ""
    base_url: str = "https://api.search.brave.com"
    timeout_seconds: float = 15.0
    result_count: int = 5


@dataclass
class ModelConfig:
    """Anthropic Messages API connection."""

    api_key: str = ""
    base_url: str = "https://api.anthropic.com"
    model: str = "claude-opus-4-1-20250805"
    max_tokens: int = 2000
    temperature: float = 0.3
    timeout_seconds: float = 30.0
    api_version: str = "2023-06-01"


# ============================================================
# MASTER CONFIG
# ============================================================

@dataclass
class EngineConfig:
    """
    Master configuration for the recommendation engine.
    """

    risk: RiskConfig = field(default_factory=RiskConfig)
    recommendation: RecommendationConfig = field(default_factory=RecommendationConfig)
    broker: BrokerConfig = field(default_factory=BrokerConfig)
    news: NewsConfig = field(default_factory=NewsConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    use_mock_broker: bool = False
    """Run against the in-process mock broker (no credentials needed)."""

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "EngineConfig":
        """Load configuration from environment variables."""
        load_dotenv(dotenv_path)
        return cls(
            recommendation=RecommendationConfig(
                default_ttl_minutes=int(os.getenv("RECOMMENDATION_TTL_MINUTES", "240")),
            ),
            broker=BrokerConfig(
                api_key=os.getenv("OANDA_API_KEY", ""),
                account_id=os.getenv("OANDA_ACCOUNT_ID", ""),
                live=os.getenv("OANDA_ENV", "practice").lower() == "live",
                timeout_seconds=float(os.getenv("OANDA_TIMEOUT_SECONDS", "10")),
            ),
            news=NewsConfig(
                api_key=os.getenv("BRAVE_API_KEY", ""),
                base_url=os.getenv("BRAVE_BASE_URL", "https://api.search.brave.com"),
                timeout_seconds=float(os.getenv("BRAVE_TIMEOUT_SECONDS", "15")),
            ),
            model=ModelConfig(
                api_key=os.getenv("ANTHROPIC_API_KEY", ""),
                model=os.getenv("ANTHROPIC_MODEL", "claude-opus-4-1-20250805"),
                max_tokens=int(os.getenv("ANTHROPIC_MAX_TOKENS", "2000")),
                temperature=float(os.getenv("ANTHROPIC_TEMPERATURE", "0.3")),
                timeout_seconds=float(os.getenv("ANTHROPIC_TIMEOUT_SECONDS", "30")),
            ),
            database=DatabaseConfig.from_env(),
            use_mock_broker=os.getenv("USE_MOCK_BROKER", "false").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
        )

    @classmethod
    def for_testing(cls) -> "EngineConfig":
        """Get configuration for testing."""
        return cls(
            database=DatabaseConfig.for_testing(),
            use_mock_broker=True,
            log_level="DEBUG",
        )
