"""
Database connection management.

Production runs on Cloud SQL for PostgreSQL, reached through the Cloud SQL
Python Connector (pg8000 driver, IAM database authentication). Any other
SQLAlchemy URL can be supplied with DATABASE_URL, which is how local
development and tests point the pipeline at their own database.
"""

import logging
import os
from contextlib import contextmanager
from typing import Generator

from google.cloud.sql.connector import Connector
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from attachment_pipeline.db.tables import metadata

logger = logging.getLogger(__name__)


class DatabaseConnection:
    """
    Process-wide engine and session factory for the pipeline database.

    Usage:
        DatabaseConnection.initialize()  # DATABASE_URL or Cloud SQL env vars

        with DatabaseConnection.session() as session:
            session.execute(...)

        DatabaseConnection.close()

    Queue workers share the pool, so pool_size should cover the worker
    count plus the maintenance tasks and API requests.
    """

    _engine: Engine | None = None
    _connector: Connector | None = None
    _session_factory: sessionmaker | None = None

    @classmethod
    def initialize(
        cls,
        database_url: str | None = None,
        instance_connection_name: str | None = None,
        db_name: str | None = None,
        db_user: str | None = None,
        pool_size: int = 10,
        max_overflow: int = 10,
        pool_timeout: int = 30,
        pool_recycle: int = 1800,
    ):
        """
        Create the engine. Calling it again while initialized does nothing.

        Args:
            database_url: SQLAlchemy URL (default DATABASE_URL); wins over Cloud SQL
            instance_connection_name: project:region:instance (default INSTANCE_CONNECTION_NAME)
            db_name: Database name (default DB_NAME or "attachments")
            db_user: IAM database user (default DB_USER)
            pool_size: Persistent connections kept in the pool
            max_overflow: Extra connections allowed under load
            pool_timeout: Seconds to wait for a free connection
            pool_recycle: Seconds before a connection is replaced

        Raises:
            ValueError: If neither a URL nor complete Cloud SQL settings are given
        """
        if cls._engine is not None:
            return

        database_url = database_url or os.getenv("DATABASE_URL")
        if database_url:
            cls._engine = create_engine(database_url, pool_pre_ping=True)
            logger.info("Database engine created for %s", cls._engine.url.render_as_string())
        else:
            cls._engine = cls._create_cloud_sql_engine(
                instance_connection_name or os.getenv("INSTANCE_CONNECTION_NAME"),
                db_name or os.getenv("DB_NAME", "attachments"),
                db_user or os.getenv("DB_USER"),
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_timeout=pool_timeout,
                pool_recycle=pool_recycle,
            )

        cls._session_factory = sessionmaker(bind=cls._engine)

    @classmethod
    def _create_cloud_sql_engine(
        cls,
        instance_connection_name: str | None,
        db_name: str,
        db_user: str | None,
        **pool_options,
    ) -> Engine:
        if not instance_connection_name:
            raise ValueError(
                "DATABASE_URL or INSTANCE_CONNECTION_NAME is required "
                "(Cloud SQL format: project:region:instance)"
            )
        if not db_user:
            raise ValueError("DB_USER is required for Cloud SQL IAM authentication")

        connector = Connector()
        cls._connector = connector

        def getconn():
            return connector.connect(
                instance_connection_name,
                "pg8000",
                user=db_user,
                db=db_name,
                enable_iam_auth=True,
            )

        logger.info("Connecting to Cloud SQL instance %s/%s", instance_connection_name, db_name)
        return create_engine(
            "postgresql+pg8000://",
            creator=getconn,
            pool_pre_ping=True,
            **pool_options,
        )

    @classmethod
    def get_engine(cls) -> Engine:
        if cls._engine is None:
            raise RuntimeError(
                "Database not initialized. Call DatabaseConnection.initialize() first."
            )
        return cls._engine

    @classmethod
    def get_session_factory(cls) -> sessionmaker:
        if cls._session_factory is None:
            raise RuntimeError(
                "Database not initialized. Call DatabaseConnection.initialize() first."
            )
        return cls._session_factory

    @classmethod
    def get_session(cls) -> Session:
        """New session; the caller commits and closes it (UnitOfWork does both)."""
        return cls.get_session_factory()()

    @classmethod
    @contextmanager
    def session(cls) -> Generator[Session, None, None]:
        """Session that commits on success and rolls back on error."""
        with cls.get_session() as session:
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise

    @classmethod
    def create_tables(cls):
        """Create missing pipeline tables. Production uses migrations/ instead."""
        metadata.create_all(cls.get_engine())

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._engine is not None

    @classmethod
    def close(cls):
        """Dispose of the pool and the Cloud SQL connector, if any."""
        if cls._engine is not None:
            cls._engine.dispose()
        if cls._connector is not None:
            cls._connector.close()

        cls._engine = None
        cls._connector = None
        cls._session_factory = None
