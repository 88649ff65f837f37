import logging

from hellogt.config import settings
from hellogt.core.errors import AlreadyDecided, DecodeError, MatchCheckFailed, StoreUnavailable
from hellogt.db.store import DocumentStore, eq
from hellogt.models import Match, MatchOutcome, SwipeType
from hellogt.services.swipes import SwipeDecisionStore


logger = logging.getLogger(__name__)


class MatchDetector:
    """
    Turns a right swipe into a match when the target already liked the actor.

    The match document key is the sorted pair of user ids, so both clients
    racing to create it write the same document and at most one match ever
    exists per pair.
    """

    def __init__(self, store: DocumentStore, swipes: SwipeDecisionStore):
        self.store = store
        self.swipes = swipes

    async def process_right_swipe(self, actor_user_id: str, target_user_id: str) -> MatchOutcome:
        """
        Record the like (unless a previous attempt already did) and check for
        a reciprocal like. Store failures after the like is recorded raise
        MatchCheckFailed; retrying the call is safe.
        """
        state = await self.swipes.state_for(actor_user_id)
        if target_user_id in state.left_swipes:
            raise AlreadyDecided(actor_user_id, target_user_id)
        if target_user_id not in state.right_swipes:
            await self.swipes.record_swipe(actor_user_id, target_user_id, SwipeType.LIKE)

        try:
            if not await self._has_liked(target_user_id, actor_user_id):
                logger.info("Swiped right on %s - waiting for their swipe", target_user_id)
                return MatchOutcome.no_match()

            match, is_new = await self._upsert_match(actor_user_id, target_user_id)
            await self.swipes.add_match(actor_user_id, match.id)
        except (StoreUnavailable, DecodeError) as e:
            logger.warning("Match check %s -> %s failed: %s", actor_user_id, target_user_id, e)
            raise MatchCheckFailed(f"Match check failed: {e}") from e

        if is_new:
            logger.info("MATCH %s created by %s", match.id, actor_user_id)
        else:
            logger.info("MATCH %s already existed, seen by %s", match.id, actor_user_id)
        return MatchOutcome.created(match, is_new=is_new)

    async def _has_liked(self, actor_user_id: str, target_user_id: str) -> bool:
        documents = await self.store.query(
            settings.SWIPE_DECISIONS_COLLECTION,
            [
                eq("userId", actor_user_id),
                eq("targetUserId", target_user_id),
                eq("decision", SwipeType.LIKE.value),
            ],
        )
        return bool(documents)

    async def _upsert_match(self, user_a: str, user_b: str):
        candidate = Match.between(user_a, user_b)
        existing = await self.store.get(settings.MATCHES_COLLECTION, candidate.id)
        if existing is not None:
            return Match.from_document(existing.id, existing.data), False

        await self.store.upsert(settings.MATCHES_COLLECTION, candidate.id, candidate.to_document())
        return candidate, True
