import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from msgspec import Struct

from lanzza.consts import IMPORTED_CHAT_PREFIX
from lanzza.models import ChatRecord, LoadState, Snapshot

logger = logging.getLogger(__name__)

type Fetch = Callable[[str], Awaitable[tuple[ChatRecord | None, Snapshot | None]]]
type Sleep = Callable[[float], Awaitable[None]]
type StateListener = Callable[[LoadState], None]


class RetryPolicy(Struct, frozen=True):
    """
    Retry envelope for loading a chat that may not exist yet.

    Retry n (0-based) waits base_delay + n * step seconds. initial_delay is waited
    once before the very first attempt.
    """

    max_retries: int
    base_delay: float
    step: float = 0.5
    initial_delay: float = 0.0


ORDINARY_POLICY = RetryPolicy(max_retries=5, base_delay=1.0)
# Imported chats are written by an asynchronous job; give it time to finish.
IMPORTED_POLICY = RetryPolicy(max_retries=15, base_delay=2.0, initial_delay=2.0)


def policy_for(chat_id: str) -> RetryPolicy:
    return IMPORTED_POLICY if chat_id.startswith(IMPORTED_CHAT_PREFIX) else ORDINARY_POLICY


@dataclass(slots=True)
class RetrySchedule:
    policy: RetryPolicy
    retries: int = 0

    @property
    def exhausted(self) -> bool:
        return self.retries >= self.policy.max_retries

    def delay_for(self, retry: int) -> float:
        return self.policy.base_delay + retry * self.policy.step

    def next_delay(self) -> float | None:
        """Consumes one retry and returns its delay, or None once the budget is spent."""
        if self.exhausted:
            return None
        delay = self.delay_for(self.retries)
        self.retries += 1
        return delay


class LoadOutcome(Struct, frozen=True):
    state: LoadState
    record: ChatRecord | None = None
    snapshot: Snapshot | None = None
    retries: int = 0
    abandoned: bool = False


def _has_messages(record: ChatRecord | None) -> bool:
    return record is not None and len(record.messages) > 0


class RetryingLoader:
    """
    Bounded-retry state machine around a chat fetch.

    A fetch that finds no record (or an empty one), or that times out, counts as
    not found. Once the retry budget is spent a final direct check runs; if the
    chat is still missing the outcome is READY without a record, never an error.
    Storage errors are not retried and propagate to the caller.
    """

    def __init__(
        self,
        fetch: Fetch,
        *,
        sleep: Sleep = asyncio.sleep,
        attempt_timeout: float | None = 10.0,
        policy: Callable[[str], RetryPolicy] = policy_for,
        on_state: StateListener | None = None,
        should_continue: Callable[[], bool] = lambda: True,
    ) -> None:
        self._fetch = fetch
        self._sleep = sleep
        self._attempt_timeout = attempt_timeout
        self._policy = policy
        self._on_state = on_state
        self._should_continue = should_continue

    async def load(self, chat_id: str) -> LoadOutcome:
        policy = self._policy(chat_id)
        schedule = RetrySchedule(policy)

        if policy.initial_delay > 0:
            await self._sleep(policy.initial_delay)

        while True:
            if not self._should_continue():
                return LoadOutcome(state=LoadState.IDLE, retries=schedule.retries, abandoned=True)

            self._emit(LoadState.LOADING)
            record, snapshot = await self._attempt(chat_id)
            if _has_messages(record):
                return LoadOutcome(state=LoadState.READY, record=record, snapshot=snapshot, retries=schedule.retries)

            self._emit(LoadState.NOT_FOUND)
            delay = schedule.next_delay()
            if delay is None:
                break
            logger.debug(
                "Chat %s not found, retrying in %.1fs (attempt %d/%d)",
                chat_id,
                delay,
                schedule.retries,
                policy.max_retries,
            )
            await self._sleep(delay)

        if not self._should_continue():
            return LoadOutcome(state=LoadState.IDLE, retries=schedule.retries, abandoned=True)

        logger.info("Failed to load chat %s after %d retries, running final check", chat_id, schedule.retries)
        record, snapshot = await self._attempt(chat_id)
        if _has_messages(record):
            logger.info("Chat %s found on final check", chat_id)
            return LoadOutcome(state=LoadState.READY, record=record, snapshot=snapshot, retries=schedule.retries)

        logger.info("Chat %s not found after all attempts, settling with empty history", chat_id)
        return LoadOutcome(state=LoadState.READY, retries=schedule.retries)

    async def _attempt(self, chat_id: str) -> tuple[ChatRecord | None, Snapshot | None]:
        try:
            async with asyncio.timeout(self._attempt_timeout):
                return await self._fetch(chat_id)
        except TimeoutError:
            logger.warning("Loading chat %s timed out after %ss", chat_id, self._attempt_timeout)
            return None, None

    def _emit(self, state: LoadState) -> None:
        if self._on_state is not None:
            self._on_state(state)
