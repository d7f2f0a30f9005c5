"""
课程、用户资料、商户配置的只读 / 轻量仓储实现
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from domain.identity.entity import Profile, Role
from domain.identity.repository import ProfileRepository
from domain.payment.entity import Course, InstructorPaymentSettings
from domain.payment.repository import (
    CourseRepository,
    InstructorPaymentSettingsRepository,
    PlatformSettingsRepository,
)
from infrastructure.models.catalog import (
    CourseModel,
    InstructorPaymentSettingsModel,
    PlatformSettingModel,
    ProfileModel,
)


class SQLAlchemyCourseRepository(CourseRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, course_id: str) -> Optional[Course]:
        result = await self.session.execute(select(CourseModel).where(CourseModel.id == course_id))
        model = result.scalar_one_or_none()
        if model is None:
            return None
        return Course(
            id=model.id,
            title=model.title,
            price=int(model.price or 0),
            instructor_id=model.instructor_id,
            description=model.description,
        )


class SQLAlchemyInstructorPaymentSettingsRepository(InstructorPaymentSettingsRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_instructor(self, instructor_id: str) -> Optional[InstructorPaymentSettings]:
        result = await self.session.execute(
            select(InstructorPaymentSettingsModel).where(
                InstructorPaymentSettingsModel.instructor_id == instructor_id
            )
        )
        model = result.scalar_one_or_none()
        if model is None:
            return None
        return InstructorPaymentSettings(
            instructor_id=model.instructor_id,
            client_key=model.midtrans_client_key or "",
            server_key=model.midtrans_server_key or "",
            is_production=bool(model.is_production),
            is_active=bool(model.is_active),
        )


class SQLAlchemyPlatformSettingsRepository(PlatformSettingsRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, key: str) -> Optional[dict]:
        result = await self.session.execute(
            select(PlatformSettingModel.setting_value).where(PlatformSettingModel.setting_key == key)
        )
        value = result.scalar_one_or_none()
        return value if isinstance(value, dict) else None


class SQLAlchemyProfileRepository(ProfileRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: str) -> Optional[Profile]:
        result = await self.session.execute(select(ProfileModel).where(ProfileModel.id == user_id))
        model = result.scalar_one_or_none()
        if model is None:
            return None
        return Profile(
            id=model.id,
            email=model.email,
            full_name=model.full_name,
            role=Role(model.role),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    async def update_role(self, profile: Profile) -> Profile:
        await self.session.execute(
            update(ProfileModel)
            .where(ProfileModel.id == profile.id)
            .values(role=profile.role.value, updated_at=profile.updated_at or datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return profile
