import os
from datetime import date
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, PositiveFloat, PositiveInt, field_validator


CONFIG_ENV_VAR = "SCHEDULE_CONFIG"
DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "config.yaml")


class StoreBackend(str, Enum):
    sqlite = "sqlite"
    json = "json"


class StoreSettings(BaseModel):
    backend: StoreBackend = StoreBackend.sqlite
    sqlite_path: str = "schedule.sqlite"
    json_path: str = "lessons.json"


class Settings(BaseModel):
    timezone: str = "Europe/Moscow"
    query_timeout: PositiveFloat = 10
    listing_months_offset: PositiveInt = 6
    numerator_anchor: date = date(2026, 2, 9)
    log_level: str = "INFO"
    store: StoreSettings = StoreSettings()

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except ZoneInfoNotFoundError:
            raise ValueError(f"unknown timezone {value!r}")

        return value

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def load_settings(path: str | None = None) -> Settings:
    path = path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    return Settings.model_validate(data)
