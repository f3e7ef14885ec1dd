from decimal import Decimal, InvalidOperation
from functools import lru_cache
from typing import Any, Dict, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_CORS = ["http://localhost:3000", "http://localhost:5173"]
_DEFAULT_TIER_PRICES = "0:0,10:10,20:20,30:30"


def _parse_cors_origins(v: Any) -> List[str]:
    try:
        if v is None or v == "":
            return _DEFAULT_CORS.copy()
        if isinstance(v, list):
            return [x for x in v if isinstance(x, str) and x.strip()]
        s = str(v).strip()
        if not s:
            return _DEFAULT_CORS.copy()
        if s.startswith("["):
            import json
            out = json.loads(s)
            return [x for x in out if isinstance(x, str) and x.strip()] or _DEFAULT_CORS.copy()
        return [x.strip() for x in s.split(",") if x.strip()] or _DEFAULT_CORS.copy()
    except Exception:
        return _DEFAULT_CORS.copy()


def _parse_tier_prices(v: Any) -> Dict[int, Decimal]:
    """Parse "tier:price,tier:price" (or a JSON object) into {tier: price}. Tier 0 is always free."""
    s = str(v or "").strip() or _DEFAULT_TIER_PRICES
    if s.startswith("{"):
        import json
        pairs = [(str(k), str(p)) for k, p in json.loads(s).items()]
    else:
        pairs = [tuple(part.split(":", 1)) for part in s.split(",") if part.strip()]
    prices: Dict[int, Decimal] = {}
    for tier, price in pairs:
        try:
            level = int(str(tier).strip())
            amount = Decimal(str(price).strip())
        except (ValueError, InvalidOperation) as e:
            raise ValueError(f"Invalid API_TIER_PRICES entry {tier}:{price}") from e
        if level < 0 or not amount.is_finite() or amount < 0:
            raise ValueError(f"Invalid API_TIER_PRICES entry {tier}:{price}")
        prices[level] = amount
    prices[0] = Decimal("0")
    return prices


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    env: str = Field(default="development", description="ENV")
    debug: bool = Field(default=False, description="DEBUG")
    secret_key: str = Field(default="change-me-in-production-min-32-chars")
    api_token_secret: str = Field(default="", alias="API_TOKEN_SECRET")

    # MongoDB
    mongodb_uri: str = Field(default="mongodb://localhost:27017", alias="MONGODB_URI")
    mongodb_db_name: str = Field(default="bch_api_credit", alias="MONGODB_DB_NAME")

    # Redis (worker)
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")

    # Deposit wallet
    wallet_mnemonic: str = Field(default="", alias="WALLET_MNEMONIC")
    wallet_coin: str = Field(default="bch", alias="WALLET_COIN", description="bch | bch_slp")

    # Indexer and price feed
    indexer_url: str = Field(default="https://bch1.trezor.io", alias="INDEXER_URL")
    price_feed_url: str = Field(
        default="https://api.coingecko.com/api/v3/simple/price",
        alias="PRICE_FEED_URL",
    )
    price_coin_id: str = Field(default="bitcoin-cash", alias="PRICE_COIN_ID")
    reference_currency: str = Field(default="usd", alias="REFERENCE_CURRENCY")
    http_timeout_seconds: float = Field(default=10.0, alias="HTTP_TIMEOUT_SECONDS")

    # Sentry
    sentry_dsn: str | None = Field(default=None, alias="SENTRY_DSN")

    # CORS: env as string, exposed as list
    cors_origins_raw: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        alias="CORS_ORIGINS",
        description="Comma-separated or JSON list",
    )

    @property
    def cors_origins(self) -> List[str]:
        return _parse_cors_origins(getattr(self, "cors_origins_raw", None))

    # Pricing (API tiers, reference currency)
    api_tier_prices_raw: str = Field(
        default=_DEFAULT_TIER_PRICES,
        alias="API_TIER_PRICES",
        description="Comma-separated tier:price pairs or JSON object",
    )
    api_token_lifetime_days: int = Field(default=30, alias="API_TOKEN_LIFETIME_DAYS")

    @property
    def api_tier_prices(self) -> Dict[int, Decimal]:
        return _parse_tier_prices(self.api_tier_prices_raw)

    @property
    def api_token_signing_key(self) -> str:
        return self.api_token_secret or self.secret_key

    # Worker
    credit_refresh_cron_enabled: bool = Field(default=False, alias="CREDIT_REFRESH_CRON_ENABLED")


@lru_cache
def get_settings() -> Settings:
    return Settings()
