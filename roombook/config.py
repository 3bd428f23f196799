"""Application configuration settings.

This module defines the ``Settings`` class using ``pydantic-settings`` to
load configuration from environment variables and an optional ``.env`` file.
It centralises all runtime configuration for the application: groupware
credentials, the working-hours window, Google Calendar delegation and the
Slack bot tokens.
"""

from pathlib import Path
from typing import Dict, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from .models import TimeSlot
from .timeutil import DEFAULT_TIMEZONE, parse_time

# .env at the project root (parent of roombook/)
ENV_PATH = Path(__file__).resolve().parent.parent / ".env"

LOGIN_PATH = "/gw/uat/uia/egovLoginUsr.do"
SCHEDULE_BASE_PATH = "/schedule"
RESOURCE_TREE_PATH = "/WebResource/SearchEmpResourceTree"
RESERVATION_LIST_PATH = "/WebResource/GetCalResourceListFull"
INSERT_RESERVATION_PATH = "/WebResource/InsertResourceReservation"


class Settings(BaseSettings):
    """Configuration values loaded from environment variables.

    Environment variable names map to fields by alias. Groupware credentials
    default to empty so that ``mr --setup`` can run before they exist;
    ``validate_config`` reports what is still missing.
    """

    # Groupware portal
    gw_base_url: str = Field(default="https://gw.rsquare.co.kr", alias="GW_BASE_URL")
    gw_user_id: str = Field(default="", alias="GW_USER_ID")
    gw_password: str = Field(default="", alias="GW_PASSWORD")

    # Subscriber block sent with every reservation (resSubscriberList)
    gw_user_type: str = Field(default="10", alias="GW_USER_TYPE")
    gw_org_type: str = Field(default="U", alias="GW_ORG_TYPE")
    gw_group_seq: str = Field(default="rsquare", alias="GW_GROUP_SEQ")
    gw_comp_seq: str = Field(default="1000", alias="GW_COMP_SEQ")
    gw_dept_seq: str = Field(default="", alias="GW_DEPT_SEQ")
    gw_emp_seq: str = Field(default="", alias="GW_EMP_SEQ")
    gw_emp_name: str = Field(default="", alias="GW_EMP_NAME")
    gw_dept_name: str = Field(default="", alias="GW_DEPT_NAME")
    gw_duty_code: str = Field(default="", alias="GW_DUTY_CODE")
    gw_path: str = Field(default="", alias="GW_PATH")
    gw_super_key: str = Field(default="", alias="GW_SUPER_KEY")

    # Booking behaviour
    work_hours_start: str = Field(
        default="09:00",
        alias="WORK_HOURS_START",
        description="Start of the business day over which free gaps are computed.",
    )
    work_hours_end: str = Field(default="18:00", alias="WORK_HOURS_END")
    time_slot_interval: int = Field(
        default=30,
        alias="TIME_SLOT_INTERVAL",
        description="Granularity in minutes of the start/end choices offered to users.",
    )
    timezone: str = Field(default=DEFAULT_TIMEZONE, alias="TIMEZONE")
    headless: bool = Field(default=False, alias="MR_HEADLESS")

    # Google Calendar
    google_service_account_json: str = Field(
        default="",
        alias="GOOGLE_SERVICE_ACCOUNT_JSON",
        description="Inline service account JSON or a path to the key file.",
    )
    google_calendar_user: str = Field(default="", alias="GOOGLE_CALENDAR_USER")

    # Slack
    slack_bot_token: str = Field(default="", alias="SLACK_BOT_TOKEN")
    slack_signing_secret: str = Field(default="", alias="SLACK_SIGNING_SECRET")
    slack_app_token: str = Field(default="", alias="SLACK_APP_TOKEN")
    keepalive_minutes: int = Field(default=30, alias="KEEPALIVE_MINUTES")

    # HTTP API
    enable_cors: bool = Field(default=False, alias="ENABLE_CORS")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ENV_PATH
        extra = "ignore"
        populate_by_name = True

    @field_validator("work_hours_start", "work_hours_end", mode="after")
    @classmethod
    def check_hhmm(cls, v: str) -> str:
        parse_time(v)
        return v.strip()

    @field_validator("gw_user_id", "gw_password", "slack_bot_token", "slack_app_token", mode="after")
    @classmethod
    def strip_secret(cls, v: str) -> str:
        return (v or "").strip()

    @property
    def work_window(self) -> TimeSlot:
        return TimeSlot(start=parse_time(self.work_hours_start), end=parse_time(self.work_hours_end))

    @property
    def calendar_configured(self) -> bool:
        return bool(self.google_service_account_json.strip())

    @property
    def slack_configured(self) -> bool:
        return bool(self.slack_bot_token and self.slack_app_token)

    def subscriber(self) -> Dict[str, str]:
        """The logged-in user as the portal expects it in ``resSubscriberList``."""
        return {
            "userType": self.gw_user_type,
            "orgType": self.gw_org_type,
            "groupSeq": self.gw_group_seq,
            "compSeq": self.gw_comp_seq,
            "deptSeq": self.gw_dept_seq,
            "empSeq": self.gw_emp_seq,
            "empName": self.gw_emp_name,
            "loginId": self.gw_user_id,
            "deptName": self.gw_dept_name,
            "dutyCode": self.gw_duty_code,
            "path": self.gw_path,
            "superKey": self.gw_super_key,
        }


def validate_config(cfg: "Settings") -> List[str]:
    """Return a list of problems that prevent logging in; empty when usable."""
    errors: List[str] = []
    if not cfg.gw_user_id:
        errors.append("GW_USER_ID is not set.")
    if not cfg.gw_password:
        errors.append("GW_PASSWORD is not set.")
    if cfg.work_window.start >= cfg.work_window.end:
        errors.append("WORK_HOURS_START must be before WORK_HOURS_END.")
    return errors


# Instantiate settings at module import time. This allows other modules to
# import ``settings`` directly without repeatedly reading environment variables.
settings = Settings()
