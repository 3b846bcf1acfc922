from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "postgresql+asyncpg://expoflow:expoflow_dev@db:5432/expoflow"
    DATABASE_ECHO: bool = False

    # Security
    SECRET_KEY: str = "dev-secret-key-not-for-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    ALLOWED_ORIGINS: str = "*"

    # Quote pricing defaults (percent)
    DEFAULT_MARGIN_MATERIALS: float = 20.0
    DEFAULT_MARGIN_LABOUR: float = 15.0
    DEFAULT_MARGIN_EXPENSES: float = 10.0
    DEFAULT_MARGIN_LOGISTICS: float = 15.0
    DEFAULT_VAT_PERCENTAGE: float = 16.0
    DEFAULT_VAT_ENABLED: bool = True

    # App
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
