from pydantic_settings import BaseSettings, SettingsConfigDict
class Settings(BaseSettings):
    APP_ENV: str = "dev"
    APP_SECRET: str = "change-me"
    DB_URL: str = "sqlite:///./roms.db"
    JWT_ISS: str = "roms"
    JWT_EXP_MIN: int = 12*60
    LOG_LEVEL: str = "INFO"

    # pricing / lifecycle policy
    FREE_DELIVERY_THRESHOLD: float = 500
    FLAT_DELIVERY_FEE: float = 50
    TAX_RATE: float = 0.05
    CLAMP_NEGATIVE_TOTAL: bool = True
    CANCEL_WINDOW_MINUTES: int = 5
    MODIFY_WINDOW_MINUTES: int = 5
    RETURN_WINDOW_HOURS: int = 24
    MAX_SCHEDULE_DAYS: int = 7
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
settings = Settings()
