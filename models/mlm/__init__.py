# models/mlm/__init__.py
"""
Compensation-specific models: monthly stats, global stats, star history.
"""

from models.mlm.monthly_stats import UserMonthlyCheckStats, MONTHLY_STAT_FIELDS
from models.mlm.stats import Stats, GLOBAL_STATS_KEY
from models.mlm.star_history import StarHistory

__all__ = [
    'UserMonthlyCheckStats',
    'MONTHLY_STAT_FIELDS',
    'Stats',
    'GLOBAL_STATS_KEY',
    'StarHistory',
]
