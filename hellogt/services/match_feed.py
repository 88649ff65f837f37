import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from hellogt.config import settings
from hellogt.core.errors import DecodeError, StoreUnavailable
from hellogt.db.store import ChangeType, DocumentChange, DocumentStore, Subscription, eq
from hellogt.models import Match


logger = logging.getLogger(__name__)

MatchCallback = Callable[[Match], Union[None, Awaitable[None]]]

# A match document names the current user in one of these two fields
PARTICIPANT_FIELDS = ("user1Id", "user2Id")


class MatchSubscription:
    """
    Live view of every match touching one user.

    The two participant-role feeds are producers writing into one queue; a
    single consumer task decodes, dedupes by match id and invokes the
    callback, so delivery is serialized and each match is delivered at most
    once per session.
    """

    def __init__(self, store: DocumentStore):
        self.store = store
        self._matches: Dict[str, Match] = {}
        self._seen: Set[str] = set()
        self._feeds: List[Subscription] = []
        self._queue: Optional[asyncio.Queue] = None
        self._consumer: Optional[asyncio.Task] = None
        self.last_error: Optional[str] = None

    @property
    def matches(self) -> List[Match]:
        return list(self._matches.values())

    @property
    def is_active(self) -> bool:
        return self._consumer is not None and not self._consumer.done()

    def get(self, match_id: str) -> Optional[Match]:
        return self._matches.get(match_id)

    def matched_user_ids(self, user_id: str) -> List[str]:
        return [match.counterpart(user_id) for match in self._matches.values() if match.involves(user_id)]

    def record(self, match: Match) -> bool:
        """
        Add a match this client learned about directly (e.g. it just created
        it). Returns False when the match was already known.
        """
        if match.id in self._seen:
            return False
        self._seen.add(match.id)
        self._matches[match.id] = match
        return True

    # ==================== Initial Load ====================

    async def load_initial_matches(self, user_id: str) -> List[Match]:
        """
        One-shot fetch of matches where the user is either participant.
        On failure the previously loaded matches are returned.
        """
        loaded: Dict[str, Match] = {}
        try:
            for participant_field in PARTICIPANT_FIELDS:
                documents = await self.store.query(settings.MATCHES_COLLECTION, [eq(participant_field, user_id)])
                for document in documents:
                    try:
                        loaded[document.id] = Match.from_document(document.id, document.data)
                    except DecodeError as e:
                        logger.warning("Skipping match document: %s", e)
        except StoreUnavailable as e:
            logger.warning("Failed to load matches for %s: %s", user_id, e)
            self.last_error = "Couldn't load your matches."
            return self.matches

        self.last_error = None
        for match in loaded.values():
            self.record(match)
        logger.info("Loaded %d matches for %s", len(loaded), user_id)
        return list(loaded.values())

    # ==================== Live Feed ====================

    def subscribe(self, user_id: str, on_match: MatchCallback) -> None:
        """Start both participant feeds. Must be called from the event loop."""
        if self.is_active:
            raise RuntimeError("Match feed already running; unsubscribe first")

        queue: asyncio.Queue = asyncio.Queue()
        self._queue = queue
        self._consumer = asyncio.get_running_loop().create_task(self._consume(queue, on_match))
        self._feeds = []
        for participant_field in PARTICIPANT_FIELDS:
            # Appended one at a time so unsubscribe() can cancel a partial start
            self._feeds.append(
                self.store.subscribe(
                    settings.MATCHES_COLLECTION,
                    [eq(participant_field, user_id)],
                    self._producer(queue, participant_field),
                )
            )
        logger.info("Match feed started for %s", user_id)

    async def unsubscribe(self) -> None:
        """Detach both feeds and stop the consumer. Delivered matches stay."""
        for feed in self._feeds:
            feed.cancel()
        self._feeds = []

        consumer, self._consumer = self._consumer, None
        self._queue = None
        if consumer is not None and not consumer.done():
            consumer.cancel()
            try:
                await consumer
            except asyncio.CancelledError:
                pass
        logger.info("Match feed stopped")

    @staticmethod
    def _producer(queue: asyncio.Queue, source: str) -> Callable[[List[DocumentChange]], None]:
        def _push(changes: List[DocumentChange]) -> None:
            queue.put_nowait((source, changes))
        return _push

    async def _consume(self, queue: asyncio.Queue, on_match: MatchCallback) -> None:
        while True:
            source, changes = await queue.get()
            for match in self._new_matches(source, changes):
                try:
                    result: Any = on_match(match)
                    if inspect.isawaitable(result):
                        await result
                except asyncio.CancelledError:
                    raise
                except Exception:
                    # One failing callback must not stop the feed
                    logger.exception("Match callback failed for %s", match.id)

    def _new_matches(self, source: str, changes: List[DocumentChange]) -> List[Match]:
        fresh: List[Match] = []
        for change in changes:
            if change.type is ChangeType.REMOVED:
                continue
            try:
                match = Match.from_document(change.id, change.data)
            except DecodeError as e:
                logger.warning("Skipping match change from %s feed: %s", source, e)
                continue
            if self.record(match):
                logger.info("Observed match %s via %s feed", match.id, source)
                fresh.append(match)
        return fresh

