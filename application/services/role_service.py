"""角色管理：仅 super_admin 可以修改其他用户的角色"""
from __future__ import annotations

from typing import Callable

from core.logging_config import get_logger
from domain.common.exceptions import ProfileNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.identity import Capability, Identity, Profile, Role


logger = get_logger(__name__)


class RoleService:
    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]) -> None:
        self._uow_factory = uow_factory

    async def change_role(self, actor: Identity, user_id: str, new_role: Role) -> Profile:
        actor.require(Capability.MANAGE_ROLES)
        async with self._uow_factory() as uow:
            profile = await uow.profile_repository.get_by_id(user_id)
            if profile is None:
                raise ProfileNotFoundException(user_id)
            previous = profile.role
            profile.change_role(new_role)
            profile = await uow.profile_repository.update_role(profile)
        logger.info(
            "role_changed",
            user_id=user_id,
            previous_role=previous.value,
            new_role=new_role.value,
            changed_by=actor.user_id,
        )
        return profile
