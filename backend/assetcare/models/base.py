from __future__ import annotations
from sqlalchemy.orm import declarative_base

# Shared metadata for every table (Alembic target_metadata points here)
Base = declarative_base()
