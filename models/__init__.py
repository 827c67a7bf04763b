# models/__init__.py
"""
Database models for the compensation engine.
Import all models here for easy access.
"""

# Base and mixins
from models.base import Base, TimestampMixin

# Core models
from models.user import User
from models.tree_node import TreeNode, SIDE_ROOT, SIDE_LEFT, SIDE_RIGHT
from models.universal_setting import UniversalSetting

# Compensation models
from models.mlm.monthly_stats import UserMonthlyCheckStats, MONTHLY_STAT_FIELDS
from models.mlm.stats import Stats, GLOBAL_STATS_KEY
from models.mlm.star_history import StarHistory

__all__ = [
    # Base
    'Base',
    'TimestampMixin',

    # Core
    'User',
    'TreeNode',
    'SIDE_ROOT',
    'SIDE_LEFT',
    'SIDE_RIGHT',
    'UniversalSetting',

    # Compensation
    'UserMonthlyCheckStats',
    'MONTHLY_STAT_FIELDS',
    'Stats',
    'GLOBAL_STATS_KEY',
    'StarHistory',
]
