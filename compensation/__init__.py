# compensation/__init__.py
"""
Binary-tree compensation engine: placement, volumes, checks, payouts, RSP and star levels.
"""

# Services
from compensation.services.settings_service import SettingsService
from compensation.services.tree_store import TreeStore
from compensation.services.placement_service import PlacementService, PlacementResult
from compensation.services.volume_service import VolumeService, PropagationResult
from compensation.services.rsp_service import RspService, RspPropagationResult
from compensation.services.payout_service import PayoutService, PayoutRunResult
from compensation.services.eligibility_service import EligibilityService, EligibilityResult, LevelUpResult
from compensation.services.rules_service import RulesService
from compensation.services.stats_service import StatsService, parseMonth
from compensation.services.purchase_service import PurchaseService, PurchaseResult
from compensation.services import check_service

# Rules and configuration
from compensation.rules.conditions import ConditionType, StarLevelRule, Criteria, parseRules
from compensation.config.defaults import StarLevel

# Errors
from compensation.errors import (
    CompensationError,
    ValidationError,
    NotFoundError,
    ConflictError,
    TraversalLimitError,
    DataInconsistencyWarning,
)

# Utilities
from compensation.utils.time_machine import timeMachine

# Events
from compensation.events.event_bus import eventBus, CompensationEvents

__all__ = [
    # Services
    'SettingsService',
    'TreeStore',
    'PlacementService',
    'PlacementResult',
    'VolumeService',
    'PropagationResult',
    'RspService',
    'RspPropagationResult',
    'PayoutService',
    'PayoutRunResult',
    'EligibilityService',
    'EligibilityResult',
    'LevelUpResult',
    'RulesService',
    'StatsService',
    'parseMonth',
    'PurchaseService',
    'PurchaseResult',
    'check_service',

    # Rules and config
    'ConditionType',
    'StarLevelRule',
    'Criteria',
    'parseRules',
    'StarLevel',

    # Errors
    'CompensationError',
    'ValidationError',
    'NotFoundError',
    'ConflictError',
    'TraversalLimitError',
    'DataInconsistencyWarning',

    # Utils
    'timeMachine',

    # Events
    'eventBus',
    'CompensationEvents',
]
