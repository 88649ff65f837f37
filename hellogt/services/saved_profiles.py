import logging
from typing import Dict, List

from pydantic import ValidationError

from hellogt.core.errors import StoreUnavailable
from hellogt.db.redis import LocalStateService
from hellogt.models import Profile


logger = logging.getLogger(__name__)


class SavedProfiles:
    """Profiles a user bookmarked, kept on the device under their own key."""

    def __init__(self, user_id: str, local_state: LocalStateService):
        self.user_id = user_id
        self.local_state = local_state
        self._saved: Dict[str, Profile] = {}

    @property
    def storage_key(self) -> str:
        return self.local_state.saved_profiles_key(self.user_id)

    @property
    def profiles(self) -> List[Profile]:
        return list(self._saved.values())

    def is_saved(self, profile_id: str) -> bool:
        return profile_id in self._saved

    async def save(self, profile: Profile) -> None:
        if profile.id in self._saved:
            return
        self._saved[profile.id] = profile
        await self._persist()
        logger.info("Saved profile: %s", profile.name)

    async def unsave(self, profile_id: str) -> None:
        if self._saved.pop(profile_id, None) is None:
            return
        await self._persist()
        logger.info("Removed saved profile: %s", profile_id)

    async def load(self) -> List[Profile]:
        try:
            raw = await self.local_state.get_json(self.storage_key)
        except StoreUnavailable as e:
            logger.warning("Failed to load saved profiles: %s", e)
            return self.profiles

        loaded: Dict[str, Profile] = {}
        for item in raw or []:
            try:
                profile = Profile.model_validate(item)
            except ValidationError as e:
                logger.warning("Dropping unreadable saved profile: %s", e)
                continue
            loaded[profile.id] = profile
        self._saved = loaded
        return self.profiles

    async def _persist(self) -> None:
        await self.local_state.put_json(self.storage_key, [p.to_local() for p in self._saved.values()])
