"""Atomic-or-best-effort unit of work for checkout and order-lifecycle writes.

Services are written once against ``UnitOfWork`` and run steps through it:

    with unit_of_work_for(capability, "place_order", timeout=30) as uow:
        uow.step("verify", verify, writes=False)
        uow.step("decrement_stock", decrement, compensation="restore stock")

``TransactionalUnitOfWork`` wraps a Protean ``UnitOfWork``: every write is held
until the block exits cleanly and discarded on any error.

``SequentialUnitOfWork`` is the degraded mode for stores without
multi-aggregate transactions. Each step persists as soon as it runs and nothing
is undone automatically; a failure after a write becomes ``PartialCommitError``
listing the compensations an operator has to apply.

Both check a deadline before every step and raise ``CheckoutTimeout`` once it
has passed.
"""

import time
from abc import ABC, abstractmethod
from enum import Enum

import structlog
from protean import UnitOfWork as ProteanUnitOfWork
from protean.exceptions import ExpectedVersionError

from storefront.config import CheckoutSettings, TransactionMode
from storefront.errors import CheckoutTimeout, PartialCommitError, WriteConflict, warn_degraded_mode

logger = structlog.get_logger(__name__)

# Providers whose sessions can commit or roll back several aggregates together
TRANSACTIONAL_PROVIDERS = ("memory", "sqlite", "postgresql")


class TransactionCapability(Enum):
    TRANSACTIONAL = "transactional"
    SEQUENTIAL = "sequential"


def detect_transaction_support(domain, settings=None):
    """Decide once, at start-up, how units of work will run against ``domain``.

    An explicit ``transaction_mode`` wins. In ``auto`` mode every configured
    provider must support transactions, otherwise checkout degrades to
    sequential execution.
    """
    settings = settings or CheckoutSettings()
    if settings.transaction_mode == TransactionMode.TRANSACTIONAL:
        return TransactionCapability.TRANSACTIONAL
    if settings.transaction_mode == TransactionMode.SEQUENTIAL:
        return TransactionCapability.SEQUENTIAL

    with domain.domain_context():
        kinds = {name: provider.conn_info["provider"] for name, provider in domain.providers.items()}

    unsupported = sorted(name for name, kind in kinds.items() if kind not in TRANSACTIONAL_PROVIDERS)
    if unsupported:
        logger.warning(
            "Providers without transaction support, checkout will run in degraded mode",
            providers=unsupported,
        )
        return TransactionCapability.SEQUENTIAL

    logger.info("Transaction support detected", providers=sorted(kinds))
    return TransactionCapability.TRANSACTIONAL


class UnitOfWork(ABC):
    mode = None

    def __init__(self, name, timeout=None, clock=time.monotonic):
        self.name = name
        self.timeout = timeout
        self._clock = clock
        self._started_at = None
        self.completed_steps = []

    @property
    def degraded(self):
        return self.mode == TransactionCapability.SEQUENTIAL

    def _check_deadline(self, step_name):
        if self.timeout is None or self._started_at is None:
            return
        if self._clock() - self._started_at > self.timeout:
            raise CheckoutTimeout(step_name, self.timeout)

    @abstractmethod
    def step(self, name, action, compensation=None, writes=True):
        """Run ``action()`` as the step called ``name`` and return its result.

        ``compensation`` describes how to undo the step by hand if a later step
        fails in sequential mode. Read-only steps pass ``writes=False``.
        """

    @abstractmethod
    def __enter__(self): ...

    @abstractmethod
    def __exit__(self, exc_type, exc, tb): ...


def _write_conflict(unit_of_work, step, error):
    logger.warning("Write conflict", unit_of_work=unit_of_work, step=step, detail=str(error))
    return WriteConflict(str(error), step=step)


class TransactionalUnitOfWork(UnitOfWork):
    mode = TransactionCapability.TRANSACTIONAL

    def __init__(self, name, timeout=None, clock=time.monotonic):
        super().__init__(name, timeout, clock)
        self._uow = None

    def __enter__(self):
        self._started_at = self._clock()
        self._uow = ProteanUnitOfWork()
        self._uow.start()
        return self

    def step(self, name, action, compensation=None, writes=True):
        self._check_deadline(name)
        try:
            result = action()
        except ExpectedVersionError as error:
            raise _write_conflict(self.name, name, error) from error
        self.completed_steps.append(name)
        return result

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None:
            self._uow.rollback()
            logger.info(
                "Unit of work rolled back",
                unit_of_work=self.name,
                completed_steps=self.completed_steps,
                error=type(exc).__name__,
            )
            return False

        try:
            self._uow.commit()
        except ExpectedVersionError as error:
            raise _write_conflict(self.name, None, error) from error

        logger.debug("Unit of work committed", unit_of_work=self.name, steps=self.completed_steps)
        return False


class SequentialUnitOfWork(UnitOfWork):
    mode = TransactionCapability.SEQUENTIAL

    def __init__(self, name, timeout=None, clock=time.monotonic):
        super().__init__(name, timeout, clock)
        self._compensations = []

    def __enter__(self):
        self._started_at = self._clock()
        warn_degraded_mode("store does not support multi-document transactions")
        logger.warning("Running without a transaction, writes are not rolled back", unit_of_work=self.name)
        return self

    def _fail(self, name, error):
        if not self._compensations:
            return error

        partial = PartialCommitError(
            completed_steps=self.completed_steps,
            failed_step=name,
            compensations=list(reversed(self._compensations)),
            cause=error,
        )
        logger.error(
            "Partial commit, manual reconciliation required",
            unit_of_work=self.name,
            completed_steps=partial.completed_steps,
            failed_step=name,
            compensations=partial.compensations,
            error=str(error),
        )
        return partial

    def step(self, name, action, compensation=None, writes=True):
        try:
            self._check_deadline(name)
            result = action()
        except PartialCommitError:
            raise
        except Exception as error:
            cause = _write_conflict(self.name, name, error) if isinstance(error, ExpectedVersionError) else error
            failure = self._fail(name, cause)
            if failure is error:
                raise
            if failure is cause:
                raise cause from error
            raise failure from cause

        self.completed_steps.append(name)
        if writes:
            self._compensations.append(compensation or f"undo '{name}'")
        return result

    def __exit__(self, exc_type, exc, tb):
        return False


def unit_of_work_for(capability, name, timeout=None, clock=time.monotonic):
    if capability == TransactionCapability.TRANSACTIONAL:
        return TransactionalUnitOfWork(name, timeout=timeout, clock=clock)
    return SequentialUnitOfWork(name, timeout=timeout, clock=clock)
