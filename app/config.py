from typing import List
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_TITLE: str = "Proxima Timesheets"
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "hr_system"
    PRODUCTION_MODE: bool = False
    LOG_LEVEL: str = "INFO"
    DEFAULT_OVERTIME_THRESHOLD: float = 40
    PAID_LEAVE_TYPES: List[str] = ["vacation", "sick", "personal", "maternity", "paternity"]
    UNPAID_LEAVE_TYPES: List[str] = ["unpaid"]
    MIN_REST_HOURS: float = 12

    class Config:
        env_file = ".env"

settings = Settings()
