import os
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    APP_NAME: str = "GatewayConnect"
    APP_ENV: str = "dev"
    APP_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    # test | production
    GATEWAY_MODE: str = os.getenv("GATEWAY_MODE", "test")
    DEFAULT_GATEWAY: str = "payeezy"

    # HTTP
    HTTP_TIMEOUT_SEC: int = 60
    HTTP_OPEN_TIMEOUT_SEC: int = 60
    HTTP_RETRY_MAX: int = 3

    # --- Conekta ---
    CONEKTA_KEY: Optional[str] = None

    # --- Payeezy ---
    PAYEEZY_APIKEY: Optional[str] = None
    PAYEEZY_APISECRET: Optional[str] = None
    PAYEEZY_TOKEN: Optional[str] = None

    # --- Paymentez ---
    PAYMENTEZ_APPLICATION_CODE: Optional[str] = None
    PAYMENTEZ_APP_KEY: Optional[str] = None

    # --- Checkout.com ---
    CHECKOUT_SECRET_KEY: Optional[str] = None
    CHECKOUT_CLIENT_ID: Optional[str] = None
    CHECKOUT_CLIENT_SECRET: Optional[str] = None

    # --- Payflow ---
    PAYFLOW_LOGIN: Optional[str] = None
    PAYFLOW_PASSWORD: Optional[str] = None
    PAYFLOW_PARTNER: Optional[str] = None

    # --- Pin ---
    PIN_API_KEY: Optional[str] = None

    # --- Forte ---
    FORTE_API_KEY: Optional[str] = None
    FORTE_SECRET: Optional[str] = None
    FORTE_LOCATION_ID: Optional[str] = None
    FORTE_ACCOUNT_ID: Optional[str] = None

    # --- Orbital ---
    ORBITAL_LOGIN: Optional[str] = None
    ORBITAL_PASSWORD: Optional[str] = None
    ORBITAL_MERCHANT_ID: Optional[str] = None

settings = Settings()
