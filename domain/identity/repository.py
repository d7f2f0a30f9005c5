"""Repository abstraction for user profiles."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from .entity import Profile


class ProfileRepository(ABC):

    @abstractmethod
    async def get_by_id(self, user_id: str) -> Optional[Profile]:
        ...

    @abstractmethod
    async def update_role(self, profile: Profile) -> Profile:
        ...
