"""
外部系统维护的课程 / 用户资料表映射，以及商户配置表
"""
from sqlalchemy import BigInteger, Boolean, Column, DateTime, JSON, String, Text

from .base import Base, utcnow


class CourseModel(Base):
    __tablename__ = "courses"

    id = Column(String(36), primary_key=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(BigInteger, nullable=False, default=0, comment="课程价格（IDR）")
    instructor_id = Column(String(36), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class ProfileModel(Base):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True)
    email = Column(String(255), nullable=True, index=True)
    full_name = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False, default="student", index=True,
                  comment="student/instructor/admin/super_admin")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class InstructorPaymentSettingsModel(Base):
    __tablename__ = "instructor_payment_settings"

    instructor_id = Column(String(36), primary_key=True)
    midtrans_client_key = Column(String(255), nullable=True)
    midtrans_server_key = Column(String(255), nullable=True)
    is_production = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class PlatformSettingModel(Base):
    """key -> JSON，例如 midtrans_config / revenue_split_config"""
    __tablename__ = "platform_settings"

    setting_key = Column(String(100), primary_key=True)
    setting_value = Column(JSON, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
