import os
from dataclasses import dataclass
from typing import Optional

from db.database import DEFAULT_DB_PATH
from db.models import DEFAULT_CURRENCY

DEFAULT_STORAGE_PATH = "data/local_storage.json"


@dataclass(frozen=True)
class Settings:
    """
    Runtime configuration, read from MESTEJ_* environment variables.
    """

    db_path: str = DEFAULT_DB_PATH
    storage_path: str = DEFAULT_STORAGE_PATH
    currency: str = DEFAULT_CURRENCY
    admin_email: Optional[str] = None
    admin_password: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            db_path=os.getenv("MESTEJ_DB_PATH", DEFAULT_DB_PATH),
            storage_path=os.getenv("MESTEJ_STORAGE_PATH", DEFAULT_STORAGE_PATH),
            currency=os.getenv("MESTEJ_CURRENCY", DEFAULT_CURRENCY),
            admin_email=os.getenv("MESTEJ_ADMIN_EMAIL") or None,
            admin_password=os.getenv("MESTEJ_ADMIN_PASSWORD") or None,
        )
