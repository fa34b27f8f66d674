from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    DATABASE_URL: str
    JWT_SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480
    LOG_LEVEL: str = "INFO"
    PRODUCT_NAME: str = "Sachet Water"
    STANDARD_BAG_PRICE: int = 250
    PREMIUM_BAG_PRICE: int = 270
    LOW_STOCK_THRESHOLD: int = 100
    AUTO_CLOCK_OUT_HOUR: int = 22
    AUTO_CLOCK_OUT_MINUTE: int = 0
    CREATE_TABLES_ON_STARTUP: bool = True
    BOOTSTRAP_ADMIN_EMAIL: str = ""
    BOOTSTRAP_ADMIN_PIN: str = ""
    KEEP_ALIVE_URL: str = ""
    KEEP_ALIVE_MINUTES: int = 7

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
