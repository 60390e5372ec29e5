"""
Blood Request Desk configuration

All values come from environment variables with working defaults so the
service runs unconfigured on a workstation:

- BLOODDESK_DB_PATH: SQLite database file
- BLOODDESK_DEFAULT_PASSWORD: credential given to recipients created by an admin
- BLOODDESK_DEFAULT_URGENCY: urgency stored when none is supplied
- BLOODDESK_LOG_FILE: optional log file (empty disables file logging)
- BLOODDESK_LOG_LEVEL: logging level name
"""

import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent


class Config:
    """系統配置"""
    VERSION = "1.0.0"
    APP_TITLE = "Blood Request Desk API"

    DATABASE_PATH: str = os.getenv("BLOODDESK_DB_PATH", str(PROJECT_ROOT / "blood_desk.db"))

    # Recipients created from the admin form
    DEFAULT_RECIPIENT_PASSWORD: str = os.getenv("BLOODDESK_DEFAULT_PASSWORD", "default123")
    DEFAULT_URGENCY: str = os.getenv("BLOODDESK_DEFAULT_URGENCY", "MEDIUM")
    RECIPIENT_ROLE_NAMES = ("recipient", "user", "patient")

    # ^09 followed by 7-11 digits (9-13 digits total)
    PHONE_PATTERN = r"^09\d{7,11}$"

    LOG_FILE: str = os.getenv("BLOODDESK_LOG_FILE", "blood_desk.log")
    LOG_LEVEL: str = os.getenv("BLOODDESK_LOG_LEVEL", "INFO")

    ALL_HOSPITALS_TITLE = "All Hospitals"


config = Config()
