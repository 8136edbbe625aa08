"""
Settings - database configuration read from the environment
"""

from typing import Optional

from pydantic_settings import BaseSettings


class DatabaseSettings(BaseSettings):
    """Database settings, overridable with SXDATA_* environment variables."""

    # ========== Backend ==========
    database_backend: str = "mysql"  # mysql | sqlite
    # A URL overrides the backend and its options below, e.g.
    # mysql+pymysql://user:pw@host:3306/db?unix_socket=/run/mysqld.sock
    database_url: Optional[str] = None

    # ========== MySQL ==========
    mysql_server: Optional[str] = None
    mysql_user: Optional[str] = None
    mysql_password: Optional[str] = None
    mysql_database: Optional[str] = None
    mysql_port: Optional[int] = None
    mysql_socket: Optional[str] = None

    # ========== SQLite ==========
    sqlite_database: str = ":memory:"
    sqlite_timeout: float = 5.0  # seconds to wait on a locked database
    sqlite_cached_statements: int = 128

    class Config:
        env_prefix = "SXDATA_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


# Global settings instance
settings = DatabaseSettings()
