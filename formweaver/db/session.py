import json

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from formweaver.core.config import settings

_url = make_url(settings.DATABASE_URL)
engine_kwargs: dict = {"pool_pre_ping": True}
connect_args: dict = {}

if _url.get_backend_name().startswith("postgresql"):
    connect_args["options"] = "-c timezone=utc"
elif _url.get_backend_name() == "sqlite":
    connect_args["check_same_thread"] = False
    if _url.database in (None, "", ":memory:"):
        # One shared connection so every session sees the same in-memory db
        engine_kwargs = {"poolclass": StaticPool}


def _json_serializer(value) -> str:
    # Keep non-ASCII text as-is so substring search over stored JSON matches it
    return json.dumps(value, ensure_ascii=False)


engine = create_engine(
    settings.DATABASE_URL,
    connect_args=connect_args,
    json_serializer=_json_serializer,
    **engine_kwargs,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> None:
    """Create tables for local development (production schema is managed externally)."""
    from formweaver.db import models  # noqa: F401  (register mappers)
    from formweaver.db.base import Base

    Base.metadata.create_all(bind=engine)
