import logging
from typing import List, Optional

from hellogt.config import settings
from hellogt.core.errors import DecodeError, ProfileResolutionFailed, StoreUnavailable
from hellogt.db.store import DocumentStore
from hellogt.models import Profile


logger = logging.getLogger(__name__)


class ProfileDirectory:
    """Profile lookup over the users collection."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        document = await self.store.get(settings.USERS_COLLECTION, user_id)
        if document is None:
            return None
        return Profile.from_document(document.id, document.data)

    async def resolve(self, user_id: str) -> Profile:
        """Like get_profile, but every failure becomes ProfileResolutionFailed."""
        try:
            profile = await self.get_profile(user_id)
        except (StoreUnavailable, DecodeError) as e:
            raise ProfileResolutionFailed(user_id, str(e)) from e
        if profile is None:
            raise ProfileResolutionFailed(user_id)
        return profile

    async def list_profiles(self) -> List[Profile]:
        """All decodable profiles; the user base is small enough to list."""
        profiles = []
        for document in await self.store.query(settings.USERS_COLLECTION):
            try:
                profiles.append(Profile.from_document(document.id, document.data))
            except DecodeError as e:
                logger.warning("Skipping profile: %s", e)
        return profiles
