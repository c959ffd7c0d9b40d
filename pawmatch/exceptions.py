"""
Exception hierarchy for the PawMatch engine.

Pure components (scoring, thread identity, recommendation, grouping) never
raise for well-typed input. These exceptions cover the collaborator seams:

  PawMatchError
    ├── QueryError              a live or one-shot query could not run
    │     └── MissingIndexError  ordered query without a backing index
    ├── WorkflowError           an application state change was refused
    │     ├── InvalidTransitionError
    │     └── DocumentNotFoundError
    └── MetadataError           breed/type metadata lookup failed
"""

from __future__ import annotations


class PawMatchError(Exception):
    """Base class for all engine errors."""


class QueryError(PawMatchError):
    """Raised (or delivered to ``on_error``) when a query cannot be served."""


class MissingIndexError(QueryError):
    """An ordered query needs a composite index that has not been declared."""

    def __init__(self, collection: str, fields: tuple[str, ...]) -> None:
        self.collection = collection
        self.fields = fields
        super().__init__(
            f"The query on '{collection}' requires an index on "
            f"({', '.join(fields)}). Declare it with declare_index()."
        )


class WorkflowError(PawMatchError):
    """Base class for application workflow failures."""


class InvalidTransitionError(WorkflowError):
    """An application status change is not permitted by the state machine."""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Cannot move application from '{current}' to '{target}'.")


class DocumentNotFoundError(WorkflowError):
    """A referenced document does not exist in the store."""

    def __init__(self, collection: str, doc_id: str) -> None:
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"No document '{doc_id}' in collection '{collection}'.")


class MetadataError(PawMatchError):
    """The external breed/type metadata service returned an unusable response."""
