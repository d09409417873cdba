"""Vote submission and next-poll progression.

The engine talks to three collaborators, injected as plain callables so the
SQL implementations and test doubles are interchangeable:

* ``option_lookup(poll_id) -> {"IS": option_id, "IT": option_id}``
* ``vote_upsert(poll_id, option_id, user_id) -> receipt``
* ``next_poll(user_id) -> decision | None``

Collaborator failures never escape :meth:`ProgressionEngine.confirm`; they are
folded into a :class:`ConfirmOutcome`.

A call that outlives its timeout is abandoned, not killed: the worker thread
runs on, and :func:`in_own_session` rolls back its writes instead of committing.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from contextvars import ContextVar
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional
from urllib.parse import urlencode

from isit_game.auth.session import PlayerSession
from isit_game.config.loader import get_progression_settings
from isit_game.services.assignment import Assignment

logger = logging.getLogger(__name__)

RETRY_VOTE_MESSAGE = "We couldn't save your answer. Please try again."
RETRY_OPTIONS_MESSAGE = "This poll isn't ready for answers yet. Please try again."

_abandoned: ContextVar[Optional[threading.Event]] = ContextVar(
    "progression_call_abandoned", default=None
)


def call_abandoned() -> bool:
    """True inside a collaborator call the engine has already timed out."""
    event = _abandoned.get()
    return event is not None and event.is_set()


class AbandonedCallError(TimeoutError):
    pass


def in_own_session(
    session_factory: Callable[[], Any],
    call: Callable[..., Any],
    *,
    writes: bool = False,
) -> Callable[..., Any]:
    """Run ``call(db, *args)`` on a fresh session that is closed afterwards.

    Writing calls are committed here, and only while the engine is still
    waiting for them.
    """

    def run(*args: Any) -> Any:
        db = session_factory()
        try:
            result = call(db, *args)
            if writes:
                if call_abandoned():
                    logger.warning(
                        "Rolling back %s after the caller timed out.",
                        getattr(call, "__name__", "call"),
                    )
                    db.rollback()
                    raise AbandonedCallError("Caller stopped waiting before commit.")
                db.commit()
            return result
        except AbandonedCallError:
            raise
        except Exception:
            if writes:
                db.rollback()
            raise
        finally:
            db.close()

    return run


class ConfirmStatus(str, Enum):
    ADVANCED = "advanced"
    LISTING = "listing"
    SIGN_IN_REQUIRED = "sign_in_required"
    INCOMPLETE = "incomplete"
    RETRY = "retry"


@dataclass(frozen=True)
class ProgressionResult:
    next_poll_id: Optional[str] = None
    crossed_stage: Optional[int] = None
    crossed_level: Optional[int] = None

    @property
    def goes_to_listing(self) -> bool:
        return not self.next_poll_id

    def navigation(self, previous_poll_id: Optional[str], listing_path: str) -> str:
        if self.goes_to_listing:
            return listing_path
        params = []
        if previous_poll_id:
            params.append(("prev", previous_poll_id))
        if self.crossed_stage is not None:
            params.extend([("grad", "stage"), ("sto", str(self.crossed_stage))])
        elif self.crossed_level is not None:
            params.extend([("grad", "level"), ("to", str(self.crossed_level))])
        target = f"/polls/{self.next_poll_id}"
        return f"{target}?{urlencode(params)}" if params else target


LISTING = ProgressionResult()


@dataclass(frozen=True)
class ConfirmOutcome:
    status: ConfirmStatus
    progression: Optional[ProgressionResult] = None
    redirect: Optional[str] = None
    correct: Optional[bool] = None
    message: Optional[str] = None

    @property
    def navigates(self) -> bool:
        return self.status in {
            ConfirmStatus.ADVANCED,
            ConfirmStatus.LISTING,
            ConfirmStatus.SIGN_IN_REQUIRED,
        }


def _field(raw: Any, name: str) -> Any:
    if isinstance(raw, Mapping):
        return raw.get(name)
    return getattr(raw, name, None)


def _first_field(raw: Any, *names: str) -> Any:
    for name in names:
        value = _field(raw, name)
        if value is not None:
            return value
    return None


def _coerce_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def derive_progression(raw: Any) -> ProgressionResult:
    """Translate a next-poll decision into a ProgressionResult.

    Accepts a decision object, a mapping, or a list of rows (first row wins).
    Stage crossings take precedence over level crossings; a stage crossing
    without a usable stage number falls back to the level crossing.
    """
    if isinstance(raw, (list, tuple)):
        raw = raw[0] if raw else None
    if raw is None:
        return LISTING
    next_poll_id = _field(raw, "next_poll_id")
    if not next_poll_id:
        return LISTING

    crossed_stage = None
    crossed_level = None
    if _field(raw, "crossed_stage"):
        crossed_stage = _coerce_int(_first_field(raw, "next_stage", "new_stage"))
    if crossed_stage is None and _field(raw, "crossed_level"):
        crossed_level = _coerce_int(_first_field(raw, "next_level", "new_level"))
    return ProgressionResult(
        next_poll_id=str(next_poll_id),
        crossed_stage=crossed_stage,
        crossed_level=crossed_level,
    )


class ProgressionEngine:
    def __init__(
        self,
        option_lookup: Callable[[str], Dict[str, str]],
        vote_upsert: Callable[[str, str, str], Any],
        next_poll: Callable[[str], Any],
        *,
        timeout_seconds: Optional[float] = None,
        listing_path: Optional[str] = None,
        sign_in_path: Optional[str] = None,
    ) -> None:
        settings = get_progression_settings()
        self.option_lookup = option_lookup
        self.vote_upsert = vote_upsert
        self.next_poll = next_poll
        self.timeout_seconds = timeout_seconds or settings["remote_timeout_seconds"]
        self.listing_path = listing_path or settings["listing_path"]
        self.sign_in_path = sign_in_path or settings["sign_in_path"]

    async def _call(self, fn: Callable[..., Any], *args: Any) -> Any:
        abandoned = threading.Event()
        token = _abandoned.set(abandoned)
        try:
            # to_thread copies the current context, so the worker sees this event.
            return await asyncio.wait_for(
                asyncio.to_thread(fn, *args), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            abandoned.set()
            raise
        finally:
            _abandoned.reset(token)

    async def confirm(
        self,
        poll_id: str,
        session: PlayerSession,
        assignment: Assignment,
    ) -> ConfirmOutcome:
        if not assignment.is_complete:
            return ConfirmOutcome(status=ConfirmStatus.INCOMPLETE)
        if not session.is_authenticated:
            return ConfirmOutcome(
                status=ConfirmStatus.SIGN_IN_REQUIRED, redirect=self.sign_in_path
            )
        user_id = session.user_id
        chosen = assignment.chosen

        try:
            option_ids = await self._call(self.option_lookup, poll_id) or {}
        except Exception as exc:  # noqa: BLE001
            logger.error("Option lookup failed for poll %s: %s", poll_id, exc)
            return ConfirmOutcome(
                status=ConfirmStatus.RETRY, message=RETRY_OPTIONS_MESSAGE
            )
        option_id = option_ids.get(chosen.value)
        if not option_id:
            logger.warning("Poll %s has no %s option.", poll_id, chosen.value)
            return ConfirmOutcome(
                status=ConfirmStatus.RETRY, message=RETRY_OPTIONS_MESSAGE
            )

        try:
            receipt = await self._call(self.vote_upsert, poll_id, option_id, user_id)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Vote upsert failed for poll %s user %s: %s", poll_id, user_id, exc
            )
            return ConfirmOutcome(status=ConfirmStatus.RETRY, message=RETRY_VOTE_MESSAGE)

        progression = await self.resolve_next(user_id)
        return ConfirmOutcome(
            status=(
                ConfirmStatus.LISTING
                if progression.goes_to_listing
                else ConfirmStatus.ADVANCED
            ),
            progression=progression,
            redirect=progression.navigation(poll_id, self.listing_path),
            correct=_field(receipt, "is_correct"),
        )

    async def resolve_next(self, user_id: str) -> ProgressionResult:
        try:
            raw = await self._call(self.next_poll, user_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Next-poll lookup failed for user %s; returning to listing: %s",
                user_id,
                exc,
            )
            return LISTING
        try:
            return derive_progression(raw)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Unusable next-poll decision %r: %s", raw, exc)
            return LISTING
