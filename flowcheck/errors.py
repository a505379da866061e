# flowcheck/errors.py
"""Exceptions raised inside flowcheck.

The validator entry points never let these escape for bad workflow input;
they are converted into error issues naming the offending node.
"""


class FlowcheckError(Exception):
    """Base class for all flowcheck exceptions."""


class CatalogError(FlowcheckError):
    """The node-type catalog could not be loaded or queried."""


class WorkflowLoadError(FlowcheckError):
    """A workflow or catalog file could not be read or parsed."""


class RuleError(FlowcheckError):
    """A per-type rule function failed on a node configuration."""

    def __init__(self, node_type: str, cause: BaseException):
        super().__init__(f"Rule for '{node_type}' failed: {cause}")
        self.node_type = node_type
        self.cause = cause
