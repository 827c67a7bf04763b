# compensation/config/defaults.py
"""
Compensation constants, setting keys and their defaults.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

# UV consumed per check
SELF_UV_PER_CHECK = 4  # 4 self UV = 1 check
TREE_UV_PER_SIDE = 2  # 2 left + 2 right UV = 1 check

# Setting keys (universal_settings.key)
STAR_LEVELS_KEY = "star_levels"
MAX_UV_PER_RUN_KEY = "max_checks_per_week"  # хранит максимум UV за запуск, а не чеков
MONEY_TO_RSP_KEY = "money_to_rsp"
GROUP_MIN_RSP_KEY = "group_min_rsp"
RSP_PER_UV_KEY = "rsp_to_uv"
REFERRAL_ACTIVE_LIMIT_KEY = "referralActive_limit"
ELIGIBILITY_RULES_KEY = "star_eligibility_criterias"

# Defaults
DEFAULT_MAX_UV_PER_RUN = Decimal("290")  # 0 = no cap
DEFAULT_MONEY_TO_RSP = Decimal("1.1")
DEFAULT_GROUP_MIN_RSP = Decimal("600")
DEFAULT_RSP_PER_UV = Decimal("120")
DEFAULT_REFERRAL_ACTIVE_LIMIT = Decimal("5")

DEFAULT_STAR = 1


@dataclass(frozen=True)
class StarLevel:
    lvl: int
    name: Optional[str]
    checkPrice: Optional[Decimal]

    @property
    def hasValidPrice(self) -> bool:
        return self.checkPrice is not None and self.checkPrice > 0
