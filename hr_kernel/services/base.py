"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every service in the kernel layer.  All concrete services inherit
    from BaseService, receiving a SQLAlchemy ``Session`` that they use
    via ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell around the pure domain and
    engines.  Services load rows, convert them to frozen domain objects,
    let the domain decide, and write the result back.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit.  The caller (``session_scope()`` or a
      test fixture) owns commit/rollback.
    - Time comes from the injected ``Clock``.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from hr_kernel.db.base import Base
from hr_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit).
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self._clock = clock or SystemClock()

    @property
    def clock(self) -> Clock:
        return self._clock
