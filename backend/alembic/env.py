"""
Alembic environment configuration
"""
import sys
from logging.config import fileConfig
from pathlib import Path

# Load environment variables BEFORE importing tavlo modules
BASE_DIR = Path(__file__).resolve().parent.parent.parent
sys.path.insert(0, str(BASE_DIR / "backend"))

from dotenv import load_dotenv

env_file = BASE_DIR / ".env"
if env_file.exists():
    load_dotenv(env_file, override=True)

from urllib.parse import urlparse, urlunparse

from alembic import context
from sqlalchemy import engine_from_config, pool

from tavlo.core.config import get_settings
# Import Base and models for autogenerate
from tavlo.models import Base

# this is the Alembic Config object
config = context.config


def _mask_database_url(url: str) -> str:
    """Mask password in a database URL for safe logging."""
    p = urlparse(url)
    if not p.username:
        return url
    netloc = f"{p.username}:***@{p.hostname or ''}"
    if p.port:
        netloc = f"{netloc}:{p.port}"
    return urlunparse((p.scheme, netloc, p.path or "", p.params or "", p.query or "", p.fragment or ""))


try:
    settings = get_settings()
except Exception as exc:  # pragma: no cover - helpful runtime error path
    msg = (
        "Failed to load application settings required by Alembic.\n"
        "Common causes:\n"
        "- Missing or mislocated `.env` file (expected at project root).\n"
        "- DATABASE_URL or POSTGRES_* variables not set (see `backend/tavlo/core/config.py`).\n\n"
        f"Original error: {exc}\n"
    )
    sys.stderr.write(msg)
    raise

config.set_main_option("sqlalchemy.url", settings.database_url.replace("%", "%%"))
sys.stderr.write(f"Alembic will use database URL: {_mask_database_url(settings.database_url)}\n")

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Add your model's MetaData object here for 'autogenerate' support
target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection, target_metadata=target_metadata
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
