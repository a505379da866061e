# flowcheck/rules/accumulator.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from flowcheck.models import IssueCategory, NodeConfigResult, Severity, ValidationIssue
from flowcheck.rules.profiles import AI_FRIENDLY, MINIMAL, RUNTIME, enabled


def _merge(dst: Dict[str, Any], patch: Dict[str, Any]) -> None:
    for k, v in patch.items():
        if isinstance(v, dict) and isinstance(dst.get(k), dict):
            _merge(dst[k], v)
        else:
            dst[k] = v


@dataclass
class RuleAccumulator:
    """
    Collects the findings of one node configuration.

    Every push names the lowest profile it belongs to; pushes above the active
    profile are dropped here, which keeps profiles monotone. Rule functions
    take the accumulator and return it.

    Issues tied to a property (`field=`) are de-duplicated per field, severity
    and code; the longer message wins.
    """
    profile: str
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[ValidationIssue] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    autofix: Dict[str, Any] = field(default_factory=dict)
    _by_field: Dict[Tuple[str, str, str], ValidationIssue] = field(default_factory=dict, repr=False)

    def _push(self, severity: Severity, message: str, code: Optional[str], fix: Optional[str],
              field_name: Optional[str], minimum: str) -> "RuleAccumulator":
        if not enabled(self.profile, minimum):
            return self
        issue = ValidationIssue(severity, message, code=code, category=IssueCategory.CONFIGURATION, fix=fix)
        if field_name is not None:
            key = (severity.value, field_name, code or "")
            prev = self._by_field.get(key)
            if prev is not None:
                if len(message) > len(prev.message):
                    prev.message = message
                    prev.fix = fix or prev.fix
                return self
            self._by_field[key] = issue
        target = self.errors if severity is Severity.ERROR else self.warnings
        target.append(issue)
        return self

    def error(self, message: str, code: str = None, fix: str = None, field: str = None,
              minimum: str = MINIMAL) -> "RuleAccumulator":
        return self._push(Severity.ERROR, message, code, fix, field, minimum)

    def warn(self, message: str, code: str = None, fix: str = None, field: str = None,
             minimum: str = RUNTIME) -> "RuleAccumulator":
        return self._push(Severity.WARNING, message, code, fix, field, minimum)

    def info(self, message: str, code: str = None, field: str = None,
             minimum: str = AI_FRIENDLY) -> "RuleAccumulator":
        return self._push(Severity.INFO, message, code, None, field, minimum)

    def suggest(self, text: str, minimum: str = AI_FRIENDLY) -> "RuleAccumulator":
        if enabled(self.profile, minimum) and text not in self.suggestions:
            self.suggestions.append(text)
        return self

    def fix(self, patch: Dict[str, Any], minimum: str = AI_FRIENDLY) -> "RuleAccumulator":
        """Merge an autofix patch; later writes to the same key win."""
        if enabled(self.profile, minimum):
            _merge(self.autofix, patch)
        return self

    def result(self) -> NodeConfigResult:
        return NodeConfigResult(
            valid=not self.errors,
            errors=list(self.errors),
            warnings=list(self.warnings),
            suggestions=list(self.suggestions),
            autofix=dict(self.autofix),
        )
