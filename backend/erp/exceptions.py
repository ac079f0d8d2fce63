"""Typed domain errors shared by the exams and academics services.

Services raise these; `domain_exception_handler` (wired as the DRF
EXCEPTION_HANDLER) renders them as `{code, detail, status_code, ...}` so the
caller can always tell one rejection reason from another.
"""
import logging
from typing import Any, Callable, Dict, Optional

from django.conf import settings
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class DomainError(Exception):
    code = 'DOMAIN_ERROR'
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Request rejected.'

    def __init__(self, detail: Optional[str] = None, **extra: Any):
        self.detail = detail or self.default_detail
        self.extra: Dict[str, Any] = extra
        super().__init__(self.detail)

    def as_dict(self) -> Dict[str, Any]:
        payload = {'code': self.code, 'detail': self.detail, 'status_code': self.status_code}
        payload.update(self.extra)
        return payload


# Input errors: the client must fix and resubmit.

class ValidationError(DomainError):
    code = 'VALIDATION_ERROR'
    default_detail = 'Invalid input.'


class BatchOverlap(ValidationError):
    code = 'BATCH_OVERLAP'
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Batch windows of the same test must not overlap.'


class TestLocked(DomainError):
    code = 'TEST_LOCKED'
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Batches can only be edited while the test is in draft.'


# State machine violations.

class IllegalTransition(DomainError):
    code = 'ILLEGAL_TRANSITION'
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, current: str, requested: str, detail: Optional[str] = None):
        super().__init__(
            detail or f'Cannot move test from {current} to {requested}.',
            current_state=current,
            requested_state=requested,
        )


class NotYetSchedulable(DomainError):
    code = 'NOT_YET_SCHEDULABLE'
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = 'The earliest batch has not started yet.'


class NotYetCompletable(DomainError):
    code = 'NOT_YET_COMPLETABLE'
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = 'The latest batch has not ended; use early close to complete now.'


# Entry authorization denials.

class TestNotActive(DomainError):
    code = 'TEST_NOT_ACTIVE'
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'This test is not open for entry.'


class NotEnrolled(DomainError):
    code = 'NOT_ENROLLED'
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You are not assigned to any batch of this test.'


class OutsideWindow(DomainError):
    code = 'OUTSIDE_WINDOW'
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Your batch is not open at this time.'


class CapacityExceeded(DomainError):
    code = 'CAPACITY_EXCEEDED'
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Your batch is full. Try again once a seat is released.'


class EntryExpired(DomainError):
    code = 'ENTRY_EXPIRED'
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'This entry token is no longer valid.'


# Promotion integrity violations.

class EmptyCohort(ValidationError):
    code = 'EMPTY_COHORT'
    default_detail = 'At least one student is required.'


class RosterMismatch(DomainError):
    code = 'ROSTER_MISMATCH'
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'One or more students are not in the source class.'


class RosterDrift(DomainError):
    code = 'ROSTER_DRIFT'
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Student has moved class since this promotion.'


class AlreadyRolledBack(DomainError):
    code = 'ALREADY_ROLLED_BACK'
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'This promotion has already been rolled back.'


# Transient.

class ConcurrentModification(DomainError):
    code = 'CONCURRENT_MODIFICATION'
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The record changed while you were editing it. Reload and retry.'


class DataIntegrityWarning(UserWarning):
    """Non-fatal inconsistency. Logged, never raised; processing continues."""


def retry_on_conflict(func: Callable, *args, attempts: Optional[int] = None, **kwargs):
    """Call `func`, re-invoking it when it raises ConcurrentModification.

    `func` must re-read whatever state it depends on. The last conflict is
    re-raised once `attempts` is exhausted.
    """
    attempts = attempts or settings.CBT_CONFLICT_RETRY_ATTEMPTS
    for attempt in range(1, attempts + 1):
        try:
            return func(*args, **kwargs)
        except ConcurrentModification:
            if attempt == attempts:
                raise
            logger.info('conflict on %s, retrying (attempt %d/%d)', getattr(func, '__name__', func), attempt, attempts)


def domain_exception_handler(exc, context):
    if isinstance(exc, DomainError):
        return Response(exc.as_dict(), status=exc.status_code)

    response = exception_handler(exc, context)
    if response is not None and isinstance(response.data, dict):
        response.data['status_code'] = response.status_code
    return response
