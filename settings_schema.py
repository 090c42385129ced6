from typing import Literal

from pydantic import BaseModel, Field, ValidationError


class SettingsSchema(BaseModel):
    weight_unit: Literal["kg", "lb"] = "kg"
    dashboard_days: int = Field(30, ge=1)
    smoothing_window: int = Field(7, ge=1)
    api_url: str = "http://localhost:3200"
    api_token: str | bool = ""
    log_level: str = "INFO"
    show_help_tips: bool = False


def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
