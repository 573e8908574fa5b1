"""
Runtime configuration.

Values come from the process environment, after loading a `.env` file (from
the working directory or an explicit path) with python-dotenv. Variables
already set in the environment win over the file.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

TRUE_VALUES = ("1", "true", "yes", "on")
FALSE_VALUES = ("0", "false", "no", "off", "")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass
class MenuSyncConfig:
    db_url: Optional[str] = None
    db_host: Optional[str] = None
    db_port: int = 5432
    db_name: Optional[str] = None
    db_user: Optional[str] = None
    db_password: Optional[str] = None
    db_minconn: int = 1
    db_maxconn: int = 10
    default_branch: Optional[str] = None
    clear_before_import: bool = False
    allow_partial: bool = False
    log_level: str = "INFO"

    @property
    def has_database(self) -> bool:
        return bool(self.db_url or (self.db_host and self.db_name and self.db_user and self.db_password))

    def store_kwargs(self) -> dict:
        """Keyword arguments for SupabaseCatalogStore."""
        return {
            "db_url": self.db_url,
            "host": self.db_host,
            "port": self.db_port,
            "database": self.db_name,
            "user": self.db_user,
            "password": self.db_password,
            "minconn": self.db_minconn,
            "maxconn": self.db_maxconn,
        }


def load_config(env_file: Optional[Union[str, Path]] = None) -> MenuSyncConfig:
    """
    Build the configuration from `.env` and the environment.

    Args:
        env_file: Path of the .env file; defaults to searching from the
            working directory

    Raises:
        ValueError: A variable has an unparseable value, or the pool bounds
            are inconsistent
    """
    if env_file is not None:
        if Path(env_file).exists():
            load_dotenv(env_file)
        else:
            logger.warning(f"Env file {env_file} not found, using the environment only")
    else:
        load_dotenv()

    config = MenuSyncConfig(
        db_url=os.getenv("SUPABASE_DB_URL") or None,
        db_host=os.getenv("SUPABASE_DB_HOST") or None,
        db_port=_env_int("SUPABASE_DB_PORT", 5432),
        db_name=os.getenv("SUPABASE_DB_NAME") or None,
        db_user=os.getenv("SUPABASE_DB_USER") or None,
        db_password=os.getenv("SUPABASE_DB_PASSWORD") or None,
        db_minconn=_env_int("MENUSYNC_DB_MINCONN", 1),
        db_maxconn=_env_int("MENUSYNC_DB_MAXCONN", 10),
        default_branch=os.getenv("MENUSYNC_DEFAULT_BRANCH") or None,
        clear_before_import=_env_bool("MENUSYNC_CLEAR_BEFORE_IMPORT", False),
        allow_partial=_env_bool("MENUSYNC_ALLOW_PARTIAL", False),
        log_level=(os.getenv("MENUSYNC_LOG_LEVEL") or "INFO").upper(),
    )
    if config.db_minconn < 1 or config.db_maxconn < config.db_minconn:
        raise ValueError(
            f"Invalid pool bounds: MENUSYNC_DB_MINCONN={config.db_minconn}, "
            f"MENUSYNC_DB_MAXCONN={config.db_maxconn}"
        )
    return config
