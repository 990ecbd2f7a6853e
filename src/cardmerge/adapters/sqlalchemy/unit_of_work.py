"""SQLAlchemy-backed unit of work for consolidation runs.

The adapter holds one engine per process. ``startup`` binds it (and migrates
the schema), every ``SqlAlchemyCatalogUnitOfWork`` then opens a fresh session
on it for exactly one transaction.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from cardmerge.adapters.sqlalchemy.mappings import start_mappers
from cardmerge.adapters.sqlalchemy.migrations import upgrade_head
from cardmerge.adapters.sqlalchemy.repositories import (
    SqlAlchemyContainerRepository,
    SqlAlchemyDedupLogRepository,
    SqlAlchemyItemRepository,
    SqlAlchemyMigrationLogRepository,
    SqlAlchemyReferenceRepository,
)
from cardmerge.config import get_database_config
from cardmerge.domain.ports.unit_of_work import CatalogRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = getLogger(__name__)


class StartupError(RuntimeError):
    """The adapter is used before ``startup`` or reconfigured without ``force``."""


class _Binding:
    """Engine plus the session factory derived from it."""

    def __init__(self) -> None:
        self.engine: Engine | None = None
        self._sessions: sessionmaker[Session] | None = None

    def bind(self, engine: Engine | None) -> None:
        self.engine = engine
        self._sessions = (
            None if engine is None else sessionmaker(bind=engine, expire_on_commit=False)
        )

    def sessions(self) -> sessionmaker[Session]:
        if self._sessions is None:
            raise StartupError(
                "Catalog database is not configured; call "
                "cardmerge.adapters.sqlalchemy.unit_of_work.startup() first"
            )
        return self._sessions


_BINDING = _Binding()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Bind the catalog engine, map the domain classes and migrate to head."""

    if _BINDING.engine is not None and not force:
        raise StartupError("Catalog database already configured; pass force=True to rebind")

    target = engine or create_engine(database_uri or get_database_config().uri)
    start_mappers()
    upgrade_head(engine=target)
    _BINDING.bind(target)
    log.debug("Catalog database bound to %s", target.url)


def configured_engine() -> Engine | None:
    return _BINDING.engine


def is_started() -> bool:
    return _BINDING.engine is not None


def shutdown() -> None:
    if _BINDING.engine is not None:
        _BINDING.engine.dispose()
    _BINDING.bind(None)


class SqlAlchemyCatalogUnitOfWork:
    """One session and one transaction over the catalog and its audit logs.

    Leaving the block closes the session; anything not committed by then is
    discarded, and an exception additionally triggers an explicit rollback.
    """

    def __init__(self) -> None:
        self._sessions = _BINDING.sessions()
        self._session: Session | None = None
        self._repositories: CatalogRepositories | None = None

    def __enter__(self) -> SqlAlchemyCatalogUnitOfWork:
        if self._session is not None:
            raise StartupError("Unit of work is already open")
        session = self._sessions()
        self._session = session
        self._repositories = CatalogRepositories(
            items=SqlAlchemyItemRepository(session),
            containers=SqlAlchemyContainerRepository(session),
            references=SqlAlchemyReferenceRepository(session),
            migration_logs=SqlAlchemyMigrationLogRepository(session),
            dedup_logs=SqlAlchemyDedupLogRepository(session),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self.session
        try:
            if exc_type is not None:
                session.rollback()
        finally:
            session.close()
            self._session = None
            self._repositories = None
        return False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work is not open")
        return self._session

    @property
    def repositories(self) -> CatalogRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work is not open")
        return self._repositories

    def flush(self) -> None:
        self.session.flush()

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


if TYPE_CHECKING:
    from cardmerge.domain.ports.unit_of_work import CatalogUnitOfWork

    _uow_check: CatalogUnitOfWork = SqlAlchemyCatalogUnitOfWork()
