"""
Administration of star eligibility rules.
"""
import pytest

from compensation.errors import NotFoundError, ValidationError
from compensation.services.rules_service import RulesService

HOT = {"type": "hotposition", "hotposition": {"minCount": 2, "levelsToCheck": 3}}
ACTIVE = {"type": "activeReferrals", "activeReferrals": {"minCount": 1, "levelsToCheck": "infinity"}}


def level(starLevel, *conditions):
    return {"starLevel": starLevel, "criterias": [{"isOr": False, "conditions": list(conditions)}]}


class TestRulesAdmin:
    """Tests for rule CRUD."""

    @pytest.mark.asyncio
    async def test_replace_and_read(self, session, settings):
        service = RulesService(session, settings)

        await service.replaceRules([level(3, HOT), level(2, ACTIVE)])
        rules = await service.getRules()

        assert [r.starLevel for r in rules] == [2, 3]
        assert settings.getValue("star_eligibility_criterias")[0]["starLevel"] == 2

    @pytest.mark.asyncio
    async def test_invalid_rules_not_stored(self, session, settings):
        service = RulesService(session, settings)
        await service.replaceRules([level(2, HOT)])

        with pytest.raises(ValidationError):
            await service.replaceRules([level(2, HOT), level(2, ACTIVE)])

        assert len(await service.getRules()) == 1

    @pytest.mark.asyncio
    async def test_upsert_replaces_existing_level(self, session, settings):
        service = RulesService(session, settings)
        await service.replaceRules([level(2, HOT)])

        await service.upsertLevel(level(2, ACTIVE))
        await service.upsertLevel(level(4, HOT))
        rules = await service.getRules()

        assert [r.starLevel for r in rules] == [2, 4]
        assert rules[0].criterias[0].conditions[0].minCount == 1

    @pytest.mark.asyncio
    async def test_delete_level(self, session, settings):
        service = RulesService(session, settings)
        await service.replaceRules([level(2, HOT), level(3, HOT)])

        await service.deleteLevel(2)

        assert [r.starLevel for r in await service.getRules()] == [3]
        with pytest.raises(NotFoundError):
            await service.deleteLevel(7)

    @pytest.mark.asyncio
    async def test_criteria_blocks(self, session, settings):
        service = RulesService(session, settings)
        await service.replaceRules([level(2, HOT)])

        await service.addCriteria(2, {"isOr": True, "conditions": [ACTIVE]})
        await service.updateCriteria(2, 0, {"isOr": False, "conditions": [ACTIVE, HOT]})
        rule = (await service.getRules())[0]

        assert len(rule.criterias) == 2
        assert rule.criterias[1].isOr is True
        assert len(rule.criterias[0].conditions) == 2

        await service.deleteCriteria(2, 1)
        assert len((await service.getRules())[0].criterias) == 1

    @pytest.mark.asyncio
    async def test_criteria_errors(self, session, settings):
        service = RulesService(session, settings)
        await service.replaceRules([level(2, HOT)])

        with pytest.raises(NotFoundError):
            await service.addCriteria(5, {"conditions": [HOT]})
        with pytest.raises(NotFoundError):
            await service.deleteCriteria(2, 3)
        with pytest.raises(ValidationError):
            await service.updateCriteria(2, 0, {"conditions": []})
