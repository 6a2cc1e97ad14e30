"""Application configuration via environment variables."""

from typing import Optional

from pydantic import SecretStr
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Merchant credentials (defaults point at the provider's test environment)
    cert_bundle_path: str = "Swish_Merchant_TestCertificate_1231181189.p12"
    cert_passphrase: SecretStr = SecretStr("swish")
    root_ca_path: str = "Swish_TLS_RootCA.pem"

    provider_base_url: str = "https://mss.cpc.getswish.net/swish-cpcapi/api/v1"
    callback_url: str = "https://example.test/payments/callback"
    payee_alias: str = "1231181189"
    currency: str = "SEK"

    poll_interval: float = 4.0  # seconds between status checks
    poll_max_attempts: int = 45
    poll_timeout: Optional[float] = None  # overall polling deadline, seconds
    request_timeout: float = 10.0  # per HTTP call, seconds

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
