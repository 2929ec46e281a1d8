"""
=============================================================================
DATABASE.PY — Database configuration
=============================================================================
Sets up the SQLAlchemy engine, the session factory and the declarative Base.

In DEVELOPMENT: a local SQLite file (pawledger.db)
In PRODUCTION: PostgreSQL, taken from the DATABASE_URL environment variable.
In TESTS: "sqlite://" gives a single shared in-memory database.
"""

import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

# ─────────────────────────────────────────────────────────────────────────────
# CONNECTION
# ─────────────────────────────────────────────────────────────────────────────

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./pawledger.db")

# Hosted Postgres hands out "postgres://" URLs; SQLAlchemy wants the
# psycopg (v3) dialect spelled out.
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql+psycopg://", 1)
elif DATABASE_URL.startswith("postgresql://"):
    DATABASE_URL = DATABASE_URL.replace("postgresql://", "postgresql+psycopg://", 1)

# ─────────────────────────────────────────────────────────────────────────────
# ENGINE
# ─────────────────────────────────────────────────────────────────────────────
# check_same_thread=False → FastAPI runs sync endpoints in a threadpool,
# so one SQLite connection may be used from several threads.
# StaticPool → an in-memory SQLite database only lives as long as its
# connection, so every session must share the same one.

engine_args = {}
if DATABASE_URL.startswith("sqlite"):
    engine_args["connect_args"] = {"check_same_thread": False}
    if DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
        engine_args["poolclass"] = StaticPool

engine = create_engine(DATABASE_URL, echo=False, **engine_args)

# ─────────────────────────────────────────────────────────────────────────────
# SESSION + BASE
# ─────────────────────────────────────────────────────────────────────────────

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """
    FastAPI dependency: one session per request, always closed afterwards.

      @app.get("/api/something")
      def endpoint(db: Session = Depends(get_db)):
          ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Creates every table that does not exist yet. Called once on startup."""
    Base.metadata.create_all(bind=engine)
