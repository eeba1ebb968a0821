import os
import logging
from pydantic import BaseModel, Field
from typing import List
from dotenv import load_dotenv

load_dotenv()


def _env_list(name: str, default: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


class WorkflowPolicy(BaseModel):
    """
    Role tiers the lifecycle engine treats specially.
    Values are role keys, so custom roles can be promoted via env vars.
    """
    executive_roles: List[str] = Field(
        default_factory=lambda: _env_list("EXECUTIVE_ROLES", "VP_PRODUCT,VP_TECH,VP_MARKET,PRESIDENT")
    )
    top_executive_role: str = os.getenv("TOP_EXECUTIVE_ROLE", "PRESIDENT")
    admin_roles: List[str] = Field(default_factory=lambda: _env_list("ADMIN_ROLES", "ADMIN"))
    archive_roles: List[str] = Field(default_factory=lambda: _env_list("ARCHIVE_ROLES", "HRBP,ADMIN"))

    # Used when a role has no registry entry
    fallback_approver_role: str = os.getenv("FALLBACK_APPROVER_ROLE", "HRBP")

    # Returned by grading when no band matches
    default_grade: str = os.getenv("DEFAULT_GRADE", "B")


class Config(BaseModel):
    app_name: str = "OKRFlow"
    environment: str = os.getenv("APP_ENV", "development")
    api_prefix: str = "/api"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Database
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./okrflow.db")

    # Actor identity is supplied by the upstream auth gateway
    user_header: str = os.getenv("USER_HEADER", "X-User-Id")

    version: str = "1.0.0"
    build_id: str = os.getenv("BUILD_ID", "local")
    request_id_header: str = "X-Request-ID"

    # CORS: comma-separated origins loaded from env.
    cors_origins: List[str] = Field(
        default_factory=lambda: _env_list(
            "CORS_ORIGINS",
            "http://localhost:3000,http://localhost:5173,"
            "http://127.0.0.1:3000,http://127.0.0.1:5173",
        )
    )

    rate_limit_enabled: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
    rate_limit_per_minute: int = int(os.getenv("RATE_LIMIT_PER_MINUTE", "120"))

    # Seed default workflows / grade bands on startup when tables are empty
    seed_defaults: bool = os.getenv("SEED_DEFAULTS", "true").lower() == "true"

    workflow: WorkflowPolicy = WorkflowPolicy()


settings = Config()

_logger = logging.getLogger(__name__)
if settings.environment != "development" and settings.database_url.startswith("sqlite:///./"):
    _logger.warning("Using a local SQLite file outside development; set DATABASE_URL.")
