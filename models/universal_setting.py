# models/universal_setting.py
"""
UniversalSetting model - generic key -> JSON value store for business settings.
"""
from sqlalchemy import Column, Integer, String, Text, JSON
from models.base import Base, TimestampMixin


class UniversalSetting(Base, TimestampMixin):
    __tablename__ = 'universal_settings'

    settingID = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String, nullable=False, unique=True)
    value = Column(JSON, nullable=True)
    description = Column(Text, nullable=True)

    def __repr__(self):
        return f"<UniversalSetting(key={self.key})>"
