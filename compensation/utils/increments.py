# compensation/utils/increments.py
"""
SQL expressions for atomic, zero-clamped increments.
"""
from decimal import Decimal

from sqlalchemy import case


def clampedAdd(column, delta: Decimal):
    """column + delta evaluated in the database, never below zero."""
    return case((column + delta < 0, 0), else_=column + delta)
