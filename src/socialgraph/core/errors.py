"""Typed failures raised by the graph engine."""

from __future__ import annotations


class GraphError(Exception):
    """Base class for all graph engine failures."""


class InvalidArgument(GraphError):
    """Malformed identifier, self-referencing pair or out-of-range ordinal."""


class NotFound(InvalidArgument):
    """A referenced graph or person does not exist."""


class TransactionFailure(GraphError):
    """Storage failed during a write; the transaction was rolled back."""


class InconsistentStateDetected(GraphError):
    """Storage holds an asymmetric connection pair.

    Never raised on the read path. Instances are collected as findings so
    the reader can continue with the higher of the two types while the
    pair is queued for repair.
    """

    def __init__(
        self,
        graph_id: int,
        pair: tuple[int, int],
        forward_type: int | None,
        reverse_type: int | None,
        duplicate_rows: int = 0,
    ) -> None:
        self.graph_id = graph_id
        self.pair = pair
        self.forward_type = forward_type
        self.reverse_type = reverse_type
        self.duplicate_rows = duplicate_rows
        super().__init__(
            f"Asymmetric connection {pair[0]}<->{pair[1]} in graph {graph_id}: "
            f"forward={forward_type} reverse={reverse_type} "
            f"duplicates={duplicate_rows}"
        )

    @property
    def resolved_type(self) -> int:
        """The type presented to readers: the higher of the two directions."""
        return max(self.forward_type or 0, self.reverse_type or 0)
