from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Optional

class Settings(BaseSettings):
    POSTGRES_HOST: str = "postgres"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "storefront"
    POSTGRES_USER: str = "storefront"
    POSTGRES_PASSWORD: str = "storefront"
    # Full SQLAlchemy URL, overrides the POSTGRES_* settings when set
    DATABASE_URL: Optional[str] = None

    LOG_LEVEL: str = "INFO"
    SERVICE_VERSION: str = "1.0.0"

    # Owners of the weak references held by orders
    PRODUCTS_SERVICE_URL: str = "http://products:8000"
    USERS_SERVICE_URL: str = "http://users:8000"
    REFERENCE_TIMEOUT_SECS: float = 5.0

    ORDER_NUMBER_MAX_ATTEMPTS: int = 100
    ORDER_NUMBER_INSERT_RETRIES: int = 3

    STRIPE_SECRET_KEY: str = ""
    STRIPE_API_BASE: str = "https://api.stripe.com"
    CHECKOUT_CURRENCY: str = "try"
    CHECKOUT_SUCCESS_URL: str = "http://localhost:5173/thanksPage?session_id={CHECKOUT_SESSION_ID}"
    CHECKOUT_CANCEL_URL: str = "http://localhost:5173/checkout"
    CHECKOUT_TIMEOUT_SECS: float = 10.0

    model_config = SettingsConfigDict(env_file=".env")

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

@lru_cache
def get_settings() -> Settings:
    return Settings()
