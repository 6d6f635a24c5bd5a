# autoadd/errors.py
"""
Error types raised by the auto-add engine and its helpers.

The engine itself never raises for bad rule input (it drops and logs), so
these mostly cross the boundary between the engine and its collaborators.
"""

from typing import Any, Dict, List, Optional


class AutoAddError(Exception):
    """Base exception carrying a stable code and structured details."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class RuleParseError(AutoAddError):
    """A rule or condition document could not be parsed into the rule model."""

    def __init__(self, message: str = "Invalid rule", details: Optional[Dict[str, Any]] = None):
        super().__init__("RULE_PARSE_ERROR", message, details)


class CollectionIndexError(AutoAddError):
    """A collection index document is not usable (strict loading only)."""

    def __init__(self, message: str = "Invalid collection index", details: Optional[Dict[str, Any]] = None):
        super().__init__("COLLECTION_INDEX_ERROR", message, details)


class MutationApplyError(AutoAddError):
    """
    Applying a sequence of mutation intents stopped part way.

    `applied` holds the intents that reached the cart, `remaining` the failed
    intent followed by everything after it. Callers decide what to surface;
    the next evaluation cycle re-derives whatever is still missing.
    """

    def __init__(
        self,
        message: str = "Mutation application failed",
        applied: Optional[List[Any]] = None,
        remaining: Optional[List[Any]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.applied = list(applied or [])
        self.remaining = list(remaining or [])
        details = dict(details or {})
        details.setdefault("applied", len(self.applied))
        details.setdefault("remaining", len(self.remaining))
        super().__init__("MUTATION_APPLY_ERROR", message, details)
