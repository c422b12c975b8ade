from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "sqlite:///./sales.db"
    SECRET_KEY: str = "dev-insecure-key-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # Inventory service (products / stock)
    INVENTORY_API_URL: str = "http://localhost:5000/api"
    PRICE_LOOKUP_TIMEOUT_SECONDS: float = 5.0
    STOCK_UPDATE_TIMEOUT_SECONDS: float = 10.0

    # Workflow policies: "lenient" records warnings, "strict" blocks the sale
    PRICING_POLICY: Literal["strict", "lenient"] = "lenient"
    STOCK_POLICY: Literal["strict", "lenient"] = "lenient"
    # Purchase price assumed when the inventory service cannot be reached
    FALLBACK_COST_RATIO: float = 0.7

    # Roles that only ever see their own sales
    RESTRICTED_SALE_ROLES: list[str] = ["SELLER"]
    # Roles allowed on /sales/filters
    SALES_FILTER_ROLES: list[str] = ["ADMIN", "CONSULTANT"]

    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    LOG_LEVEL: str = "INFO"


settings = Settings()
