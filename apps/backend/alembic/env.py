from __future__ import annotations

import os
import sys
from logging.config import fileConfig

from alembic import context

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
if BASE_DIR not in sys.path:
    sys.path.insert(0, BASE_DIR)

from billcycle.core.database import Base, engine
from billcycle import models  # noqa: F401 - registers the tables on Base.metadata


config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

if context.is_offline_mode():
    raise SystemExit("billcycle migrations need a live database; --sql is not supported")

# The application engine already carries the SQLite pragmas and BEGIN handling
with engine.connect() as connection:
    context.configure(
        connection=connection,
        target_metadata=Base.metadata,
        compare_type=True,
        # SQLite cannot ALTER constraints in place
        render_as_batch=connection.dialect.name == "sqlite",
    )
    with context.begin_transaction():
        context.run_migrations()
