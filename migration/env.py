from logging.config import fileConfig

from alembic import context
from sqlalchemy import create_engine, pool

from infra.db.base import Base
import infra.db.models  # noqa: F401  registers the tables on Base.metadata


config = context.config
if config.config_file_name and config.attributes.get("configure_logger", True):
    fileConfig(config.config_file_name, disable_existing_loggers=False)

# batch mode lets SQLite ALTER through table rebuilds
COMMON_OPTIONS = {
    "target_metadata": Base.metadata,
    "render_as_batch": True,
    "compare_type": True,
}


def _run(**options) -> None:
    context.configure(**COMMON_OPTIONS, **options)
    with context.begin_transaction():
        context.run_migrations()


url = config.get_main_option("sqlalchemy.url")

if context.is_offline_mode():
    _run(url=url, literal_binds=True, dialect_opts={"paramstyle": "named"})
else:
    engine = create_engine(url, future=True, poolclass=pool.NullPool)
    try:
        with engine.connect() as connection:
            _run(connection=connection)
    finally:
        engine.dispose()
