import logging
from typing import Dict, Optional

from hellogt.config import settings
from hellogt.core.errors import (
    AlreadyDecided,
    AuthenticationRequired,
    DecodeError,
    InvalidSwipe,
    OptimisticWriteFailed,
    StoreUnavailable,
)
from hellogt.core.mutations import OptimisticUpdate
from hellogt.db.store import ArrayUnion, DocumentStore
from hellogt.models import SwipeDecision, SwipeType, UserSwipeState


logger = logging.getLogger(__name__)


class SwipeDecisionStore:
    """
    Records one-way swipes and keeps each user's swipe aggregate cached.

    Duplicate detection is client-side against the cached aggregate; the
    decision record and the aggregate are written separately, so a crash
    between the two can show the same target again after reload.
    """

    def __init__(self, store: DocumentStore):
        self.store = store
        self._states: Dict[str, UserSwipeState] = {}
        self.last_error: Optional[str] = None

    async def load_state(self, user_id: str) -> UserSwipeState:
        """(Re)load a user's aggregate. Read failures keep the cached copy."""
        try:
            document = await self.store.get(settings.USER_SWIPE_DATA_COLLECTION, user_id)
            state = UserSwipeState.from_document(user_id, document.data) if document else UserSwipeState(id=user_id)
        except (StoreUnavailable, DecodeError) as e:
            logger.warning("Failed to load swipe data for %s: %s", user_id, e)
            self.last_error = "Couldn't load your swipes. Pull to retry."
            state = self._states.get(user_id) or UserSwipeState(id=user_id)
        else:
            self.last_error = None
            logger.info(
                "Loaded swipe data for %s: %d right, %d left",
                user_id, len(state.right_swipes), len(state.left_swipes),
            )
        self._states[user_id] = state
        return state

    async def state_for(self, user_id: str) -> UserSwipeState:
        if user_id not in self._states:
            return await self.load_state(user_id)
        return self._states[user_id]

    def should_show_profile(self, actor_user_id: str, candidate_user_id: str) -> bool:
        """True iff the actor has not swiped either way on the candidate. No I/O."""
        state = self._states.get(actor_user_id)
        if state is None:
            return True
        return not state.has_decided(candidate_user_id)

    async def record_swipe(self, actor_user_id: str, target_user_id: str, decision: SwipeType) -> SwipeDecision:
        """
        Record a like/pass.
        The aggregate is updated locally first; if a write fails the raised
        OptimisticWriteFailed carries the update to revert.
        """
        if not actor_user_id:
            raise AuthenticationRequired("Sign in to swipe")
        if actor_user_id == target_user_id:
            raise InvalidSwipe("Cannot swipe on yourself.")

        state = await self.state_for(actor_user_id)
        if state.has_decided(target_user_id):
            raise AlreadyDecided(actor_user_id, target_user_id)

        record = SwipeDecision(
            id=SwipeDecision.document_id_for(actor_user_id, target_user_id),
            actor_user_id=actor_user_id,
            target_user_id=target_user_id,
            decision=decision,
        )
        update = OptimisticUpdate(
            f"swipe {decision.name.lower()} {actor_user_id}->{target_user_id}",
            apply=lambda: state.add_decision(target_user_id, decision),
            revert=lambda: state.discard_decision(target_user_id, decision),
        ).apply()

        try:
            await self.store.upsert(settings.SWIPE_DECISIONS_COLLECTION, record.id, record.to_document())
            await self.store.upsert(
                settings.USER_SWIPE_DATA_COLLECTION,
                actor_user_id,
                {UserSwipeState.field_for(decision): ArrayUnion([target_user_id])},
                merge=True,
            )
        except StoreUnavailable as e:
            logger.warning("Swipe %s -> %s not saved: %s", actor_user_id, target_user_id, e)
            raise OptimisticWriteFailed(update, e) from e

        logger.info("Swiped %s: %s -> %s", decision.name.lower(), actor_user_id, target_user_id)
        return record

    async def add_match(self, user_id: str, match_id: str) -> None:
        """Append a match id to the user's own aggregate."""
        state = await self.state_for(user_id)
        state.add_match(match_id)
        await self.store.upsert(
            settings.USER_SWIPE_DATA_COLLECTION,
            user_id,
            {"matches": ArrayUnion([match_id])},
            merge=True,
        )

    def forget(self, user_id: str) -> None:
        self._states.pop(user_id, None)
