# compensation/services/rules_service.py
"""
Administration of star eligibility rules.
Every change is validated against the whole rule set before it is stored.
"""
from typing import Any, List
from sqlalchemy.orm import Session
import logging

from compensation.config.defaults import ELIGIBILITY_RULES_KEY
from compensation.errors import NotFoundError, ValidationError
from compensation.rules.conditions import (
    StarLevelRule,
    parseCriteria,
    parseRules,
    parseStarLevelRule,
    rulesToJson,
)
from compensation.services.settings_service import SettingsService

logger = logging.getLogger(__name__)


class RulesService:
    """CRUD over the star_eligibility_criterias setting."""

    def __init__(self, session: Session, settings: SettingsService = None):
        self.session = session
        self.settings = settings or SettingsService(session)

    async def getRules(self) -> List[StarLevelRule]:
        return self.settings.eligibilityRules()

    async def replaceRules(self, value: Any) -> List[StarLevelRule]:
        rules = parseRules(value)
        return self._save(rules)

    async def upsertLevel(self, entry: Any) -> StarLevelRule:
        rule = parseStarLevelRule(entry)
        rules = [r for r in self.settings.eligibilityRules() if r.starLevel != rule.starLevel]
        rules.append(rule)
        self._save(rules)
        return rule

    async def deleteLevel(self, starLevel: int) -> List[StarLevelRule]:
        rules = self.settings.eligibilityRules()
        remaining = [r for r in rules if r.starLevel != starLevel]
        if len(remaining) == len(rules):
            raise NotFoundError(f"No rules for star level {starLevel}")
        return self._save(remaining)

    async def addCriteria(self, starLevel: int, criteria: Any) -> StarLevelRule:
        parsed = parseCriteria(criteria)
        rules = self.settings.eligibilityRules()
        rule = self._findLevel(rules, starLevel)
        rule.criterias.append(parsed)
        self._save(rules)
        return rule

    async def updateCriteria(self, starLevel: int, index: int, criteria: Any) -> StarLevelRule:
        parsed = parseCriteria(criteria)
        rules = self.settings.eligibilityRules()
        rule = self._findLevel(rules, starLevel)
        self._checkIndex(rule, index)
        rule.criterias[index] = parsed
        self._save(rules)
        return rule

    async def deleteCriteria(self, starLevel: int, index: int) -> StarLevelRule:
        rules = self.settings.eligibilityRules()
        rule = self._findLevel(rules, starLevel)
        self._checkIndex(rule, index)
        del rule.criterias[index]
        self._save(rules)
        return rule

    def _findLevel(self, rules: List[StarLevelRule], starLevel: int) -> StarLevelRule:
        for rule in rules:
            if rule.starLevel == starLevel:
                return rule
        raise NotFoundError(f"No rules for star level {starLevel}")

    def _checkIndex(self, rule: StarLevelRule, index: int):
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(rule.criterias):
            raise NotFoundError(f"Star level {rule.starLevel} has no criteria block {index}")

    def _save(self, rules: List[StarLevelRule]) -> List[StarLevelRule]:
        rules = sorted(rules, key=lambda r: r.starLevel)
        value = rulesToJson(rules)

        # повторная проверка полного набора перед записью
        try:
            parseRules(value)
        except ValidationError as e:
            logger.error(f"Refusing to store invalid eligibility rules: {e}")
            raise

        self.settings.setValue(ELIGIBILITY_RULES_KEY, value, "Star eligibility criteria")
        logger.info(f"Eligibility rules saved for star levels {[r.starLevel for r in rules]}")
        return rules
