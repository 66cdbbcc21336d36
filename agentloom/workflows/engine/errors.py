"""Graph engine errors.

Everything here is a fatal-engine or caller error: nodes are expected to
encode external failures into state instead of raising.
"""


class GraphError(Exception):
    """Base for graph engine failures."""


class GraphValidationError(GraphError):
    """Graph definition is malformed (raised at compile time)."""


class InvalidRouteError(GraphError):
    """A router or Command selected a target that was not declared."""


class GraphRecursionError(GraphError):
    """Step ceiling reached before END."""


class InvalidUpdateError(GraphError):
    """A node returned an update the state schema cannot merge."""


class ThreadNotFoundError(GraphError):
    """No checkpoint exists for the requested thread / checkpoint id."""


class ResumeError(GraphError):
    """Resume requested on a thread that is not waiting (or on a stale interrupt)."""


class GraphCancelledError(GraphError):
    """Run aborted through the abort signal. No checkpoint was written for the aborted step."""
