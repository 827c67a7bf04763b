# compensation/rules/conditions.py
"""
Star eligibility rules.

Stored shape (universal_settings key "star_eligibility_criterias"):

    [
      {
        "starLevel": 2,
        "criterias": [
          {"isOr": false, "conditions": [
              {"type": "hotposition", "hotposition": {"minCount": 2, "levelsToCheck": 3}},
              {"type": "personal_check", "personalCheck": {"minChecksCreated": 10, "monthsToCheck": 2}}
          ]}
        ]
      }
    ]

Each condition is a tagged union: "type" plus exactly one payload object
under the matching key. Downline-scoped conditions carry "levelsToCheck",
a positive integer or "infinity" (unbounded).

Blocks with isOr=false require every condition, isOr=true requires any.
A star level is granted when any of its blocks passes.
"""
import math
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Union

from compensation.errors import ValidationError

UNBOUNDED = "infinity"
UNBOUNDED_ALIASES = (UNBOUNDED, "unbounded")


class ConditionType(Enum):
    HOTPOSITION = "hotposition"
    ACTIVE_REFERRALS = "activeReferrals"
    PERSONAL_RSP = "personal_rsp"
    GROUP_RSP = "group_rsp"
    GROUP_STAR = "group_star"
    PERSONAL_CHECK = "personal_check"
    GROUP_CHECK = "group_check"


# type -> payload key
PAYLOAD_KEYS = {
    ConditionType.HOTPOSITION: "hotposition",
    ConditionType.ACTIVE_REFERRALS: "activeReferrals",
    ConditionType.PERSONAL_RSP: "personalRsp",
    ConditionType.GROUP_RSP: "groupRsp",
    ConditionType.GROUP_STAR: "groupStar",
    ConditionType.PERSONAL_CHECK: "personalCheck",
    ConditionType.GROUP_CHECK: "groupCheck",
}


@dataclass(frozen=True)
class Depth:
    """Downline depth selector; levels=None means unbounded."""
    levels: Optional[int] = None

    @property
    def isUnbounded(self) -> bool:
        return self.levels is None

    def limit(self, unboundedLimit: int) -> int:
        return unboundedLimit if self.isUnbounded else self.levels

    def toJson(self) -> Union[int, str]:
        return UNBOUNDED if self.isUnbounded else self.levels


@dataclass(frozen=True)
class HotpositionCondition:
    minCount: int
    levelsToCheck: Depth
    conditionType: ClassVar[ConditionType] = ConditionType.HOTPOSITION


@dataclass(frozen=True)
class ActiveReferralsCondition:
    minCount: int
    levelsToCheck: Depth
    conditionType: ClassVar[ConditionType] = ConditionType.ACTIVE_REFERRALS


@dataclass(frozen=True)
class PersonalRspCondition:
    minRsp: Decimal
    monthsToCheck: int
    conditionType: ClassVar[ConditionType] = ConditionType.PERSONAL_RSP


@dataclass(frozen=True)
class GroupRspCondition:
    minRsp: Decimal
    monthsToCheck: int
    levelsToCheck: Depth
    conditionType: ClassVar[ConditionType] = ConditionType.GROUP_RSP


@dataclass(frozen=True)
class GroupStarCondition:
    starLevel: int
    minUsers: int
    levelsToCheck: Depth
    conditionType: ClassVar[ConditionType] = ConditionType.GROUP_STAR


@dataclass(frozen=True)
class PersonalCheckCondition:
    minChecksCreated: int
    monthsToCheck: int
    conditionType: ClassVar[ConditionType] = ConditionType.PERSONAL_CHECK


@dataclass(frozen=True)
class GroupCheckCondition:
    minChecksCreated: int
    monthsToCheck: int
    levelsToCheck: Depth
    conditionType: ClassVar[ConditionType] = ConditionType.GROUP_CHECK


Condition = Union[
    HotpositionCondition,
    ActiveReferralsCondition,
    PersonalRspCondition,
    GroupRspCondition,
    GroupStarCondition,
    PersonalCheckCondition,
    GroupCheckCondition,
]


@dataclass
class Criteria:
    isOr: bool
    conditions: List[Condition] = field(default_factory=list)


@dataclass
class StarLevelRule:
    starLevel: int
    criterias: List[Criteria] = field(default_factory=list)

    @property
    def allConditions(self) -> List[Condition]:
        return [c for criteria in self.criterias for c in criteria.conditions]


def conditionDepth(condition: Condition) -> Optional[Depth]:
    """Depth selector of a downline-scoped condition, None for personal ones."""
    return getattr(condition, "levelsToCheck", None)


# region Validation helpers

def _isPositiveInt(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _isNonNegativeInt(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _isNonNegativeNumber(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return False
    if isinstance(value, float) and not math.isfinite(value):
        return False
    if isinstance(value, Decimal) and not value.is_finite():
        return False
    return value >= 0


def _positiveInt(payload: Dict, name: str, prefix: str) -> int:
    value = payload.get(name)
    if not _isPositiveInt(value):
        raise ValidationError(f"{prefix}.{name} must be a positive integer.")
    return value


def _nonNegativeInt(payload: Dict, name: str, prefix: str) -> int:
    value = payload.get(name)
    if not _isNonNegativeInt(value):
        raise ValidationError(f"{prefix}.{name} must be an integer >= 0.")
    return value


def _nonNegativeNumber(payload: Dict, name: str, prefix: str) -> Decimal:
    value = payload.get(name)
    if not _isNonNegativeNumber(value):
        raise ValidationError(f"{prefix}.{name} must be a number >= 0.")
    return Decimal(str(value))


def _depth(payload: Dict, prefix: str) -> Depth:
    value = payload.get("levelsToCheck")
    if value in UNBOUNDED_ALIASES:
        return Depth(None)
    if _isPositiveInt(value):
        return Depth(value)
    raise ValidationError(
        f"{prefix}.levelsToCheck must be a positive integer or '{UNBOUNDED}'."
    )

# endregion


def _buildCondition(conditionType: ConditionType, payload: Dict) -> Condition:
    prefix = PAYLOAD_KEYS[conditionType]

    if conditionType is ConditionType.HOTPOSITION:
        return HotpositionCondition(
            minCount=_positiveInt(payload, "minCount", prefix),
            levelsToCheck=_depth(payload, prefix),
        )
    if conditionType is ConditionType.ACTIVE_REFERRALS:
        return ActiveReferralsCondition(
            minCount=_positiveInt(payload, "minCount", prefix),
            levelsToCheck=_depth(payload, prefix),
        )
    if conditionType is ConditionType.PERSONAL_RSP:
        return PersonalRspCondition(
            minRsp=_nonNegativeNumber(payload, "minRsp", prefix),
            monthsToCheck=_positiveInt(payload, "monthsToCheck", prefix),
        )
    if conditionType is ConditionType.GROUP_RSP:
        return GroupRspCondition(
            minRsp=_nonNegativeNumber(payload, "minRsp", prefix),
            monthsToCheck=_positiveInt(payload, "monthsToCheck", prefix),
            levelsToCheck=_depth(payload, prefix),
        )
    if conditionType is ConditionType.GROUP_STAR:
        return GroupStarCondition(
            starLevel=_positiveInt(payload, "starLevel", prefix),
            minUsers=_positiveInt(payload, "minUsers", prefix),
            levelsToCheck=_depth(payload, prefix),
        )
    if conditionType is ConditionType.PERSONAL_CHECK:
        return PersonalCheckCondition(
            minChecksCreated=_nonNegativeInt(payload, "minChecksCreated", prefix),
            monthsToCheck=_positiveInt(payload, "monthsToCheck", prefix),
        )
    if conditionType is ConditionType.GROUP_CHECK:
        return GroupCheckCondition(
            minChecksCreated=_nonNegativeInt(payload, "minChecksCreated", prefix),
            monthsToCheck=_positiveInt(payload, "monthsToCheck", prefix),
            levelsToCheck=_depth(payload, prefix),
        )

    raise ValidationError(f"Unsupported condition type '{conditionType.value}'.")


def parseCondition(raw: Any) -> Condition:
    if not isinstance(raw, dict):
        raise ValidationError("Condition must be an object.")

    rawType = raw.get("type")
    try:
        conditionType = ConditionType(rawType)
    except ValueError:
        raise ValidationError(f"Invalid condition type '{rawType}'.")

    requiredKey = PAYLOAD_KEYS[conditionType]
    present = [key for key in PAYLOAD_KEYS.values() if raw.get(key) is not None]
    if present != [requiredKey]:
        raise ValidationError(
            f"Condition type '{rawType}' must include only '{requiredKey}' payload."
        )

    payload = raw[requiredKey]
    if not isinstance(payload, dict):
        raise ValidationError(f"Payload '{requiredKey}' must be an object.")

    return _buildCondition(conditionType, payload)


def parseCriteria(raw: Any) -> Criteria:
    if not isinstance(raw, dict):
        raise ValidationError("Criteria must be an object.")

    isOr = raw.get("isOr", False)
    if not isinstance(isOr, bool):
        raise ValidationError("criteria.isOr must be boolean.")

    rawConditions = raw.get("conditions")
    if not isinstance(rawConditions, list) or not rawConditions:
        raise ValidationError("criteria.conditions must be a non-empty array.")

    conditions = []
    for i, rawCondition in enumerate(rawConditions):
        try:
            conditions.append(parseCondition(rawCondition))
        except ValidationError as e:
            raise ValidationError(f"criteria.conditions[{i}]: {e}")

    return Criteria(isOr=isOr, conditions=conditions)


def parseStarLevelRule(raw: Any) -> StarLevelRule:
    if not isinstance(raw, dict):
        raise ValidationError("Star level entry must be an object.")

    starLevel = raw.get("starLevel")
    if not _isPositiveInt(starLevel):
        raise ValidationError("starLevel must be a positive integer.")

    rawCriterias = raw.get("criterias")
    if not isinstance(rawCriterias, list):
        raise ValidationError("criterias must be an array.")

    criterias = []
    for i, rawCriteria in enumerate(rawCriterias):
        try:
            criterias.append(parseCriteria(rawCriteria))
        except ValidationError as e:
            raise ValidationError(f"criterias[{i}]: {e}")

    return StarLevelRule(starLevel=starLevel, criterias=criterias)


def parseRules(value: Any) -> List[StarLevelRule]:
    """Parse and validate a full rule set; star levels must be unique."""
    if not isinstance(value, list):
        raise ValidationError("value must be an array.")

    rules = []
    seen = set()
    for i, rawEntry in enumerate(value):
        try:
            rule = parseStarLevelRule(rawEntry)
        except ValidationError as e:
            raise ValidationError(f"value[{i}]: {e}")

        if rule.starLevel in seen:
            raise ValidationError(f"Duplicate starLevel {rule.starLevel} in rules.")
        seen.add(rule.starLevel)
        rules.append(rule)

    return rules


# region Serialization

def _jsonNumber(value: Decimal) -> Union[int, float]:
    return int(value) if value == value.to_integral_value() else float(value)


def conditionToJson(condition: Condition) -> Dict:
    payload = {}
    for name, value in vars(condition).items():
        if isinstance(value, Depth):
            payload[name] = value.toJson()
        elif isinstance(value, Decimal):
            payload[name] = _jsonNumber(value)
        else:
            payload[name] = value

    conditionType = condition.conditionType
    return {"type": conditionType.value, PAYLOAD_KEYS[conditionType]: payload}


def criteriaToJson(criteria: Criteria) -> Dict:
    return {
        "isOr": criteria.isOr,
        "conditions": [conditionToJson(c) for c in criteria.conditions],
    }


def ruleToJson(rule: StarLevelRule) -> Dict:
    return {
        "starLevel": rule.starLevel,
        "criterias": [criteriaToJson(c) for c in rule.criterias],
    }


def rulesToJson(rules: List[StarLevelRule]) -> List[Dict]:
    return [ruleToJson(rule) for rule in rules]

# endregion
