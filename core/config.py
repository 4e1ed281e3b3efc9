from decimal import Decimal
from pydantic_settings import BaseSettings
from pydantic import ConfigDict

class Settings(BaseSettings):
    model_config = ConfigDict(env_file=".env")

    ENV: str = "development"

    DATABASE_URL: str
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Payment gateway
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    DEFAULT_CURRENCY: str = "usd"

    # Order pricing
    TAX_RATE: Decimal = Decimal("0.08")
    FREE_SHIPPING_THRESHOLD: Decimal = Decimal("100")
    FLAT_SHIPPING_FEE: Decimal = Decimal("10")
    ORDER_NUMBER_PREFIX: str = "YO"

    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]


settings = Settings()
