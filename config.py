import os
from dataclasses import dataclass
from datetime import date
from typing import Optional, Tuple

from dotenv import load_dotenv

# Load env vars
load_dotenv()


def _get_env(*keys: str, default: Optional[str] = None) -> Optional[str]:
    for k in keys:
        v = os.getenv(k)
        if v is not None and v.strip() != "":
            return v.strip()
    return default


def _get_int(*keys: str, default: int) -> int:
    v = _get_env(*keys)
    if v is None:
        return default
    return int(v)


def _get_date(*keys: str) -> Optional[date]:
    v = _get_env(*keys)
    if v is None:
        return None
    return date.fromisoformat(v)


def _get_list(*keys: str) -> Tuple[str, ...]:
    v = _get_env(*keys)
    if v is None:
        return ()
    return tuple(part.strip().lower() for part in v.split(",") if part.strip())


@dataclass(frozen=True)
class Settings:
    stripe_secret_key: str
    domain: str
    database_url: str
    secret_key: str
    cart_storage_key: str
    price_amount: int  # cents
    currency: str
    market_date: Optional[date]
    extra_disposable_domains: Tuple[str, ...]

    def is_presale(self, today: Optional[date] = None) -> bool:
        """Presale runs up to and including the market date."""
        if self.market_date is None:
            return False
        today = today or date.today()
        return today <= self.market_date


settings = Settings(
    stripe_secret_key=_get_env("STRIPE_SECRET_KEY", default="") or "",
    domain=_get_env("DOMAIN", "SITE_URL", default="http://localhost:4242"),
    database_url=_get_env("DATABASE_URL", default="sqlite:///jockblock.db"),
    secret_key=_get_env("SECRET_KEY", default="dev-secret-key"),
    cart_storage_key=_get_env("CART_STORAGE_KEY", default="jockblock-cart"),
    price_amount=_get_int("STRIPE_PRICE_AMOUNT", default=1999),
    currency=_get_env("CURRENCY", default="usd").lower(),
    market_date=_get_date("MARKET_DATE"),
    extra_disposable_domains=_get_list("EXTRA_DISPOSABLE_DOMAINS"),
)
