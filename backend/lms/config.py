"""Application settings and validation."""

import logging
import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent


class Settings:
    ENV: str
    DATABASE_URL: str
    LOG_LEVEL: str
    SQL_ECHO: bool
    PASSWORD_SCHEME: str
    ATTACHMENT_ROOT: Path

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'lms.db'}")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"
        self.PASSWORD_SCHEME = os.getenv("PASSWORD_SCHEME", "pbkdf2_sha256")
        self.ATTACHMENT_ROOT = Path(os.getenv("ATTACHMENT_ROOT", str(BASE / "data" / "attachments")))
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and self.DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
            raise RuntimeError("DATABASE_URL must point at a persistent database in non-dev environments")


def configure_logging(level: str = None):
    """Install a basic root handler unless logging is already configured."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=level or settings.LOG_LEVEL,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )


settings = Settings()
