"""Pydantic schemas for the gateway endpoints."""

from .pow import PowChallengeOut

__all__ = ["PowChallengeOut"]
