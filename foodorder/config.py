"""Payment configuration, resolved once from the environment and passed in explicitly."""
import os
import re
from typing import NamedTuple, Optional

# checked in order; the first non-empty value wins even if it turns out invalid
BASE_URL_ENV_VARS = ("WEB_APP_URL", "NEXT_PUBLIC_WEB_URL", "NEXT_PUBLIC_APP_URL", "APP_URL")
DEFAULT_CURRENCY = "zar"

_HTTP_URL = re.compile(r"^(http|https)://", re.IGNORECASE)


class PaymentConfig(NamedTuple):
    base_url_override: Optional[str]
    processor_api_key: str
    currency_code: str = DEFAULT_CURRENCY


def load_payment_config() -> PaymentConfig:
    override = None
    for name in BASE_URL_ENV_VARS:
        value = os.getenv(name)
        if value:
            override = value
            break
    return PaymentConfig(
        base_url_override=override,
        processor_api_key=os.getenv("STRIPE_SECRET_KEY", ""),
        currency_code=(os.getenv("PAYMENT_CURRENCY") or DEFAULT_CURRENCY).lower(),
    )


def resolve_base_url(config: PaymentConfig, request_origin: str) -> str:
    """Return the override when it is an http(s) URL, else the request origin."""
    url = request_origin
    if config.base_url_override and _HTTP_URL.match(config.base_url_override):
        url = config.base_url_override
    return url.rstrip("/")
