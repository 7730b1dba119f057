"""Due-rule session: walks a snapshot of due rules one at a time.

Lifecycle::

    idle --offer(non-empty)--> presenting --exhausted / dismiss--> settled
    settled --offer(empty)--> idle
    presenting --offer(empty)--> presenting, closes to idle instead of settled
    any --reset()--> idle

A settled session ignores further non-empty discoveries until one comes back
empty, so rules the user has just walked past do not pop up again on the next
poll. Within a presenting session the snapshot is never re-queried.

Execute holds the cursor when a write fails so the same rule can be retried.
Skip and Defer always move on.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Sequence

from database.interfaces import LedgerSink, RuleStore
from models.recurring_rule import RecurrenceRule
from models.transaction import LedgerEntry
from services.recurrence import next_run_for_rule
from utils.date_helpers import utc_now
from utils.errors import (
    InvalidRuleError, NotFoundError, PersistenceError, SessionClosedError,
)

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    IDLE = "idle"
    PRESENTING = "presenting"
    SETTLED = "settled"


@dataclass(frozen=True)
class ActionResult:
    action: str                     # 'execute' | 'skip' | 'defer'
    rule_id: int
    advanced: bool
    next_run_at: Optional[datetime] = None
    ledger_entry: Optional[LedgerEntry] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class DueRuleSession:
    def __init__(
        self,
        rule_store: RuleStore,
        ledger: LedgerSink,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._rules = rule_store
        self._ledger = ledger
        self._clock = clock
        self._state = SessionState.IDLE
        self._items: tuple[RecurrenceRule, ...] = ()
        self._cursor = 0
        self._rearm_on_close = False

    # ── State ────────────────────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def visible(self) -> bool:
        return self._state is SessionState.PRESENTING

    @property
    def items(self) -> tuple[RecurrenceRule, ...]:
        return self._items

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def current(self) -> RecurrenceRule | None:
        if not self.visible:
            return None
        return self._items[self._cursor]

    @property
    def position(self) -> tuple[int, int]:
        """1-based (index, total) of the presented item."""
        return self._cursor + 1, len(self._items)

    # ── Lifecycle ────────────────────────────────────────────────────────────

    def offer(self, due_rules: Sequence[RecurrenceRule]) -> bool:
        """Feed a due-discovery result. Returns True if a new session opened."""
        if self._state is SessionState.PRESENTING:
            # The latest discovery decides whether closing suppresses the next one
            self._rearm_on_close = not due_rules
            return False
        if not due_rules:
            if self._state is SessionState.SETTLED:
                logger.debug("Due list empty; session re-armed")
            self._state = SessionState.IDLE
            return False
        if self._state is SessionState.SETTLED:
            return False

        self._items = tuple(due_rules)
        self._cursor = 0
        self._rearm_on_close = False
        self._state = SessionState.PRESENTING
        logger.info("Opened due-rule session with %d rule(s)", len(self._items))
        return True

    def dismiss(self) -> None:
        """Hide the session without touching the remaining rules."""
        if self._state is SessionState.PRESENTING:
            logger.info(
                "Session dismissed with %d rule(s) left", len(self._items) - self._cursor
            )
            self._close()

    def reset(self) -> None:
        """Start a fresh notification cycle, e.g. after a new sign-in."""
        self._state = SessionState.IDLE
        self._items = ()
        self._cursor = 0
        self._rearm_on_close = False

    def _close(self) -> None:
        if self._rearm_on_close:
            logger.debug("Due list went empty while presenting; session re-armed")
            self._state = SessionState.IDLE
        else:
            self._state = SessionState.SETTLED
        self._cursor = 0
        self._rearm_on_close = False

    def _advance(self) -> None:
        if self._cursor + 1 < len(self._items):
            self._cursor += 1
        else:
            self._close()

    def _require_current(self) -> RecurrenceRule:
        rule = self.current
        if rule is None:
            raise SessionClosedError("No due-rule session is presenting")
        return rule

    # ── Actions ──────────────────────────────────────────────────────────────

    def execute(self) -> ActionResult:
        """Materialize the presented rule and re-arm its schedule.

        InvalidRuleError propagates before anything is written. A
        PersistenceError from either write leaves the cursor where it is.
        """
        rule = self._require_current()
        now = self._clock()
        next_run = next_run_for_rule(rule, now)

        try:
            entry = self._ledger.append(LedgerEntry(
                amount=rule.amount,
                category=rule.category,
                currency=rule.currency,
                note=rule.note,
                spending_time=now,
                recurring_rule_id=rule.id,
                device_name=rule.device_name,
            ))
        except PersistenceError as exc:
            logger.error("Execute failed for rule %s: %s", rule.id, exc,
                         extra={"rule_id": rule.id})
            return ActionResult("execute", rule.id, advanced=False, error=exc)

        try:
            self._rules.update(rule.id, last_run_at=now, next_run_at=next_run)
        except NotFoundError as exc:
            logger.warning("Rule %s vanished during execute; moving on", rule.id,
                           extra={"rule_id": rule.id})
            self._advance()
            return ActionResult("execute", rule.id, advanced=True,
                                ledger_entry=entry, error=exc)
        except PersistenceError as exc:
            logger.error(
                "Ledger entry %s written but rule %s not rescheduled: %s",
                entry.id, rule.id, exc, extra={"rule_id": rule.id},
            )
            return ActionResult("execute", rule.id, advanced=False,
                                ledger_entry=entry, error=exc)

        logger.info("Executed rule %s; next run at %s", rule.id, next_run.isoformat(),
                    extra={"rule_id": rule.id})
        self._advance()
        return ActionResult("execute", rule.id, advanced=True,
                            next_run_at=next_run, ledger_entry=entry)

    def skip(self) -> ActionResult:
        """Reschedule from now without a ledger entry; always advances."""
        return self._reschedule("skip")

    def defer(self) -> ActionResult:
        """'Handle later': same contract as skip."""
        return self._reschedule("defer")

    def _reschedule(self, action: str) -> ActionResult:
        # The reference is the current instant, not the rule's previous
        # next_run_at, so repeated skips drift the anchor forward.
        rule = self._require_current()
        now = self._clock()
        next_run = None
        error: Exception | None = None
        try:
            next_run = next_run_for_rule(rule, now)
            self._rules.update(rule.id, next_run_at=next_run)
        except InvalidRuleError as exc:
            logger.error("Rule %s has an invalid cadence and was not rescheduled: %s",
                         rule.id, exc, extra={"rule_id": rule.id})
            next_run, error = None, exc
        except (NotFoundError, PersistenceError) as exc:
            logger.warning("Could not reschedule rule %s on %s: %s", rule.id, action, exc,
                           extra={"rule_id": rule.id})
            next_run, error = None, exc
        else:
            logger.info("Rule %s %s; next run at %s", rule.id,
                        "skipped" if action == "skip" else "deferred",
                        next_run.isoformat(), extra={"rule_id": rule.id})
        self._advance()
        return ActionResult(action, rule.id, advanced=True, next_run_at=next_run, error=error)
