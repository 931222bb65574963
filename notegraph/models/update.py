"""Knowledge store write models."""

from enum import Enum

from pydantic import BaseModel, Field


class UpdateOperation(str, Enum):
    """SPARQL update kinds issued by the writer."""

    INSERT = "INSERT"
    DELETE = "DELETE"
    UPDATE = "UPDATE"


class DuplicatePolicy(str, Enum):
    """What to do when a triple already exists in the store."""

    SKIP = "skip"
    UPDATE = "update"  # Currently behaves like SKIP
    ERROR = "error"


class UpdateOptions(BaseModel):
    """Per-call writer options."""

    enable_batch: bool = True
    batch_size: int = Field(50, ge=1)
    validate_before_insert: bool = True
    handle_duplicates: DuplicatePolicy = DuplicatePolicy.SKIP
    timeout: float = Field(30.0, gt=0, description="Seconds per store call")
    dedupe_within_batch: bool = Field(
        False, description="Collapse identical triples in memory before the store check"
    )


class UpdateResult(BaseModel):
    """Outcome of one update statement."""

    success: bool
    triples_processed: int = 0
    errors: list[str] = Field(default_factory=list)
    execution_time_ms: float = 0.0
    operation: UpdateOperation


class BatchUpdateResult(BaseModel):
    """Aggregated outcome of a chunked insert."""

    total_triples: int = 0
    successful_triples: int = 0
    failed_triples: int = 0
    errors: list[str] = Field(default_factory=list)
    execution_time_ms: float = 0.0
    operations: list[UpdateResult] = Field(default_factory=list)


class HealthStatus(BaseModel):
    """Result of an insert-then-delete probe."""

    connected: bool
    update_capable: bool
    response_time_ms: float
    error: str | None = None
