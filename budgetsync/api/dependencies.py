"""Dependency injection for FastAPI endpoints"""

from datetime import date
from fastapi import Request
from budgetsync.config import settings
from budgetsync.domain.matching import MatchRules


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_match_rules() -> MatchRules:
    """Matching heuristics from configuration"""
    return MatchRules(
        amount_tolerance=settings.amount_tolerance,
        min_name_length=settings.min_name_length,
        grace_days=settings.grace_days,
    )


def get_today() -> date:
    """Reference date for cycle windows and overdue checks"""
    return date.today()
