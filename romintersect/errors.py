"""Error types raised by the intersection and shape-fitting pipeline.

Fit-stage errors are terminal for the call that raised them: nothing in this
package retries or falls back to a partial result, except
`fit_boundary_shape(shape="auto")`, which explicitly tries a circle after an
ellipse fit fails.
"""


class IntersectionError(Exception):
    """Base class for all romintersect errors."""


class TooFewPointsError(IntersectionError, ValueError):
    """Raised when a plane or conic fit receives too few points."""

    def __init__(self, operation: str, required: int, received: int):
        self.operation = operation
        self.required = required
        self.received = received
        super().__init__(
            f"{operation}: needs at least {required} points, got {received}"
        )


class NoValidEllipseError(IntersectionError):
    """Raised when the direct ellipse fit cannot produce a unique ellipse."""


class WrongParameterCountError(IntersectionError, ValueError):
    """Raised when a conic parameter vector does not have 6 coefficients."""


class DegenerateGeometryError(IntersectionError, ValueError):
    """Raised for zero-area triangles and zero-length directions."""
