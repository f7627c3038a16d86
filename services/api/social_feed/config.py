"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.
"""
from typing import Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── TiDB (MySQL-protocol compatible) ───────────────────────────────────
    tidb_host: str = "tidb"
    tidb_port: int = 4000
    tidb_user: str = "root"
    tidb_password: str = ""
    tidb_database: str = "social_feed"

    # Full SQLAlchemy URL; takes precedence over the tidb_* parts when set
    database_url: Optional[str] = None

    db_pool_size: int = 20
    db_max_overflow: int = 10
    # Friend-set read and publication read share one transaction, so this
    # decides which snapshot a feed request observes.
    db_isolation_level: Optional[str] = "REPEATABLE READ"

    @property
    def tidb_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"mysql+aiomysql://{self.tidb_user}:{self.tidb_password}"
            f"@{self.tidb_host}:{self.tidb_port}/{self.tidb_database}"
        )

    # ── Feed ───────────────────────────────────────────────────────────────
    feed_default_page_size: int = 10
    feed_max_page_size: int = 100          # clamp, prevents unbounded scans
    feed_query_timeout_seconds: float = 5.0

    # 'edges':        friendships relation (accepted edges, either direction)
    # 'profile_blob': legacy JSON friend list on user_profiles.friends
    friend_graph_source: Literal["edges", "profile_blob"] = "edges"

    # ── Observability ──────────────────────────────────────────────────────
    otel_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    service_name: str = "social-feed-api"
    environment: str = "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
