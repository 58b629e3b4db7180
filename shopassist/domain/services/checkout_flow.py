# shopassist/domain/services/checkout_flow.py
"""
Checkout intent state machine.

The provider owns the intent state; we only decide what to do next after each poll:

    awaiting_confirmation, no offer   -> poll again in 2s (offer still computing)
    awaiting_confirmation, offer      -> stop, hand the offer to the caller for payment
    placing_order / processing        -> poll again in 1s
    completed                         -> terminal success
    failed                            -> terminal failure
    anything else                     -> poll again in 2s

Waiting goes through a Scheduler so tests can run without real timers, and every wait
can be interrupted by a CancelToken. A timeout ceiling bounds the whole loop.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

from shopassist.domain.errors import CheckoutProviderError
from shopassist.domain.models.checkout import CheckoutIntent, CreateIntentRequest, IntentState
from shopassist.domain.services.checkout_svc import CheckoutClient, ProviderResponse, ensure_confirmable
from shopassist.domain.services.constants import (
    POLL_AWAITING_OFFER_S,
    POLL_ERROR_BACKOFF_S,
    POLL_PROCESSING_S,
    POLL_UNKNOWN_STATE_S,
)

logger = logging.getLogger(__name__)

PROCESSING_STATES = frozenset({IntentState.PLACING_ORDER.value, "processing", "retrieving_offer", "confirming"})


class PollAction(str, Enum):
    WAIT = "wait"
    OFFER_READY = "offer_ready"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class PollDecision:
    action: PollAction
    delay_s: float = 0.0


def decide(intent: CheckoutIntent, *, stop_on_offer: bool = True) -> PollDecision:
    """Next step for a freshly polled intent."""
    state = intent.state
    if state == IntentState.COMPLETED.value:
        return PollDecision(PollAction.COMPLETED)
    if state == IntentState.FAILED.value:
        return PollDecision(PollAction.FAILED)
    if state == IntentState.AWAITING_CONFIRMATION.value:
        if intent.has_offer and stop_on_offer:
            return PollDecision(PollAction.OFFER_READY)
        return PollDecision(PollAction.WAIT, POLL_AWAITING_OFFER_S)
    if state in PROCESSING_STATES:
        return PollDecision(PollAction.WAIT, POLL_PROCESSING_S)
    return PollDecision(PollAction.WAIT, POLL_UNKNOWN_STATE_S)


class CancelToken:
    """Cooperative cancellation shared between a poll loop and its owner."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


class Scheduler(Protocol):
    async def sleep(self, delay_s: float, token: CancelToken) -> None:
        ...


class AsyncioScheduler:
    """Real-time waits that return early when the token is cancelled."""

    async def sleep(self, delay_s: float, token: CancelToken) -> None:
        try:
            await asyncio.wait_for(token.wait(), timeout=delay_s)
        except asyncio.TimeoutError:
            pass


class OutcomeKind(str, Enum):
    OFFER_READY = "offer_ready"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"
    ERROR = "error"


_ACTION_TO_OUTCOME = {
    PollAction.OFFER_READY: OutcomeKind.OFFER_READY,
    PollAction.COMPLETED: OutcomeKind.COMPLETED,
    PollAction.FAILED: OutcomeKind.FAILED,
}


@dataclass(frozen=True)
class PollOutcome:
    kind: OutcomeKind
    intent: Optional[CheckoutIntent] = None
    polls: int = 0
    error: Optional[str] = None

    @property
    def terminal(self) -> bool:
        return self.kind in (OutcomeKind.COMPLETED, OutcomeKind.FAILED)


OutcomeCallback = Callable[[PollOutcome], Optional[Awaitable[None]]]


async def _notify(callback: Optional[OutcomeCallback], outcome: PollOutcome) -> None:
    if callback is None:
        return
    res = callback(outcome)
    if asyncio.iscoroutine(res):
        await res


class IntentPoller:
    """
    Polls one intent until it needs the caller (offer ready), settles, fails to answer
    `max_errors` times in a row, is cancelled, or exceeds `timeout_s`.
    """

    def __init__(
        self,
        client: CheckoutClient,
        *,
        scheduler: Optional[Scheduler] = None,
        timeout_s: Optional[float] = 120.0,
        max_errors: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.scheduler = scheduler or AsyncioScheduler()
        self.timeout_s = timeout_s
        self.max_errors = max(1, max_errors)
        self.clock = clock

    async def run(
        self,
        intent_id: str,
        *,
        token: Optional[CancelToken] = None,
        stop_on_offer: bool = True,
        on_outcome: Optional[OutcomeCallback] = None,
    ) -> PollOutcome:
        token = token or CancelToken()
        started = self.clock()
        polls = 0
        errors = 0
        last: Optional[CheckoutIntent] = None

        while True:
            if token.cancelled:
                outcome = PollOutcome(OutcomeKind.CANCELLED, last, polls)
                break
            if self.timeout_s is not None and self.clock() - started >= self.timeout_s:
                outcome = PollOutcome(OutcomeKind.TIMED_OUT, last, polls, f"no terminal state after {self.timeout_s}s")
                break

            polls += 1
            try:
                last = await self.client.fetch_intent(intent_id)
                errors = 0
            except CheckoutProviderError as e:
                errors += 1
                if errors >= self.max_errors:
                    outcome = PollOutcome(OutcomeKind.ERROR, last, polls, e.message)
                    break
                delay = POLL_ERROR_BACKOFF_S * (2 ** (errors - 1))
                logger.warning("poll intent=%s error %s/%s, retry in %.1fs: %s", intent_id, errors, self.max_errors, delay, e.message)
                await self.scheduler.sleep(delay, token)
                continue

            decision = decide(last, stop_on_offer=stop_on_offer)
            logger.debug("poll intent=%s n=%s state=%s action=%s", intent_id, polls, last.state, decision.action.value)
            if decision.action is not PollAction.WAIT:
                outcome = PollOutcome(_ACTION_TO_OUTCOME[decision.action], last, polls)
                break
            await self.scheduler.sleep(decision.delay_s, token)

        logger.info("poll intent=%s outcome=%s polls=%s", intent_id, outcome.kind.value, outcome.polls)
        await _notify(on_outcome, outcome)
        return outcome


class CheckoutFlow:
    """
    One buyer's checkout for one product:
      start(request)    -> offer ready (or settled early)
      pay(token)        -> completed / failed
    or, for an intent created elsewhere:
      attach(intent_id) -> confirm(token) / follow(...)
    `on_terminal` fires exactly once, when the intent reaches completed or failed.
    """

    def __init__(
        self,
        client: CheckoutClient,
        poller: IntentPoller,
        *,
        on_terminal: Optional[OutcomeCallback] = None,
    ):
        self.client = client
        self.poller = poller
        self.on_terminal = on_terminal
        self.token = CancelToken()
        self.intent: Optional[CheckoutIntent] = None
        self.outcome: Optional[PollOutcome] = None
        self._terminal_sent = False

    def cancel(self) -> None:
        """Stop any scheduled poll. The provider-side intent is left as is."""
        self.token.cancel()

    async def _settle(self, outcome: PollOutcome) -> PollOutcome:
        self.outcome = outcome
        if outcome.intent is not None:
            self.intent = outcome.intent
        if outcome.terminal and not self._terminal_sent:
            self._terminal_sent = True
            await _notify(self.on_terminal, outcome)
        return outcome

    async def start(self, request: CreateIntentRequest) -> PollOutcome:
        resp = await self.client.create_intent(request)
        self.intent = resp.intent()
        logger.info("checkout flow created intent=%s state=%s", self.intent.id, self.intent.state)

        first = decide(self.intent)
        if first.action is not PollAction.WAIT:
            return await self._settle(PollOutcome(_ACTION_TO_OUTCOME[first.action], self.intent, 0))
        return await self.follow(self.intent.id, stop_on_offer=True)

    async def attach(self, intent_id: str) -> CheckoutIntent:
        """Load the current provider snapshot of an existing intent."""
        self.intent = await self.client.fetch_intent(intent_id)
        return self.intent

    async def follow(self, intent_id: str, *, stop_on_offer: bool = True) -> PollOutcome:
        outcome = await self.poller.run(intent_id, token=self.token, stop_on_offer=stop_on_offer)
        return await self._settle(outcome)

    async def confirm(self, payment_token: str) -> ProviderResponse:
        """Submit payment. Only an intent awaiting confirmation with an offer may be confirmed."""
        if self.intent is None:
            raise RuntimeError("start() or attach() must run before confirm()")
        ensure_confirmable(self.intent)

        resp = await self.client.confirm_intent(self.intent.id, payment_token)
        logger.info("checkout flow confirmed intent=%s", self.intent.id)
        return resp

    async def pay(self, payment_token: str) -> PollOutcome:
        await self.confirm(payment_token)
        return await self.follow(self.intent.id, stop_on_offer=False)
