# compensation/services/settings_service.py
"""
Typed access to business settings stored in universal_settings.
"""
import math
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
import logging

from models import UniversalSetting
from compensation.config.defaults import (
    StarLevel,
    STAR_LEVELS_KEY,
    MAX_UV_PER_RUN_KEY,
    MONEY_TO_RSP_KEY,
    GROUP_MIN_RSP_KEY,
    RSP_PER_UV_KEY,
    REFERRAL_ACTIVE_LIMIT_KEY,
    ELIGIBILITY_RULES_KEY,
    DEFAULT_MAX_UV_PER_RUN,
    DEFAULT_MONEY_TO_RSP,
    DEFAULT_GROUP_MIN_RSP,
    DEFAULT_RSP_PER_UV,
    DEFAULT_REFERRAL_ACTIVE_LIMIT,
)
from compensation.errors import ValidationError
from compensation.rules.conditions import StarLevelRule, parseRules

logger = logging.getLogger(__name__)


def toDecimal(value: Any) -> Optional[Decimal]:
    """Convert a stored setting value to Decimal, None if it is not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


class SettingsService:
    """Settings provider with explicit defaults for every key."""

    def __init__(self, session: Session):
        self.session = session

    def getValue(self, key: str, default: Any = None) -> Any:
        setting = self.session.query(UniversalSetting).filter_by(key=key).first()
        if setting is None or setting.value is None:
            return default
        return setting.value

    def setValue(self, key: str, value: Any, description: Optional[str] = None) -> UniversalSetting:
        setting = self.session.query(UniversalSetting).filter_by(key=key).first()
        if setting is None:
            setting = UniversalSetting(key=key, value=value, description=description)
            self.session.add(setting)
        else:
            setting.value = value
            if description is not None:
                setting.description = description

        self.session.flush()
        logger.info(f"Setting '{key}' updated")
        return setting

    def starLevels(self) -> List[StarLevel]:
        raw = self.getValue(STAR_LEVELS_KEY, [])
        if not isinstance(raw, list):
            logger.warning(f"Setting '{STAR_LEVELS_KEY}' is not a list, ignoring")
            return []

        levels = []
        for entry in raw:
            if not isinstance(entry, dict):
                continue
            lvl = entry.get("lvl", entry.get("level"))
            if isinstance(lvl, bool):
                continue
            try:
                lvl = int(lvl)
            except (TypeError, ValueError):
                continue
            levels.append(StarLevel(
                lvl=lvl,
                name=entry.get("name"),
                checkPrice=toDecimal(entry.get("checkPrice")),
            ))
        return levels

    def checkPrices(self) -> Dict[int, Decimal]:
        """Star level -> price of one check, levels without a positive price left out."""
        return {
            level.lvl: level.checkPrice
            for level in self.starLevels()
            if level.hasValidPrice
        }

    def maxUvPerRun(self) -> Decimal:
        # 0 - без ограничения
        value = toDecimal(self.getValue(MAX_UV_PER_RUN_KEY))
        if value is None or value < 0:
            return DEFAULT_MAX_UV_PER_RUN
        return value

    def moneyToRsp(self) -> Decimal:
        value = toDecimal(self.getValue(MONEY_TO_RSP_KEY))
        if value is None or value <= 0:
            return DEFAULT_MONEY_TO_RSP
        return value

    def groupMinRsp(self) -> Decimal:
        raw = self.getValue(GROUP_MIN_RSP_KEY)
        if raw is None:
            return DEFAULT_GROUP_MIN_RSP
        value = toDecimal(raw)
        return value if value is not None else Decimal("0")

    def rspPerUv(self) -> Decimal:
        value = toDecimal(self.getValue(RSP_PER_UV_KEY))
        if value is None or value < 0:
            return DEFAULT_RSP_PER_UV
        return value

    def referralActiveLimit(self) -> Decimal:
        value = toDecimal(self.getValue(REFERRAL_ACTIVE_LIMIT_KEY))
        if value is None or value < 0:
            return DEFAULT_REFERRAL_ACTIVE_LIMIT
        return value

    def eligibilityRules(self) -> List[StarLevelRule]:
        raw = self.getValue(ELIGIBILITY_RULES_KEY, [])
        try:
            return parseRules(raw)
        except ValidationError as e:
            logger.error(f"Stored eligibility rules are invalid: {e}")
            return []
