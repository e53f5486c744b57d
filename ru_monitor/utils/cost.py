"""
Request Unit Estimation

Rough, deterministic approximation of how many Request Units (the
managed SQL service's billing unit) a database operation consumes. Only
used for alerting thresholds, never for billing.
"""

# Read-like operations
READ_OPERATION_RUS = {
    "findUnique": 5,
    "findUniqueOrThrow": 5,
    "count": 5,
    "findFirst": 8,
    "findFirstOrThrow": 8,
    "findMany": 10,
    "aggregate": 10,
    "groupBy": 10,
    "select": 10,
}

# Write-like operations; every entry costs more than any read above
WRITE_OPERATION_RUS = {
    "update": 12,
    "delete": 12,
    "create": 15,
    "insert": 15,
    "upsert": 15,
    "updateMany": 20,
    "deleteMany": 20,
    "createMany": 25,
}

OPERATION_RUS = {**READ_OPERATION_RUS, **WRITE_OPERATION_RUS}

DEFAULT_OPERATION_RUS = 10

# Wide tables with many indexes, by ORM model and by table name
HEAVY_MODELS = frozenset({"Property", "User", "properties", "users"})
HEAVY_MODEL_MULTIPLIER = 1.5


def _base_rus(operation: str) -> int:
    if operation in OPERATION_RUS:
        return OPERATION_RUS[operation]
    # SQL verbs arrive in whatever case the statement used
    return OPERATION_RUS.get(operation.lower(), DEFAULT_OPERATION_RUS)


def _duration_multiplier(duration_ms: float | None) -> int:
    if duration_ms is None:
        return 1
    if duration_ms > 1000:
        return 3
    if duration_ms > 500:
        return 2
    return 1


def estimate_request_units(
    operation: str,
    model: str | None = None,
    duration_ms: float | None = None,
    heavy_models: frozenset[str] = HEAVY_MODELS,
) -> int:
    """
    Estimate the Request Units consumed by one database operation.

    Args:
        operation: ORM action (``findMany``, ``create``...) or SQL verb.
        model: Entity/table name; ``None`` falls back to the generic cost.
        duration_ms: Observed duration; slow calls are assumed to scan more.
        heavy_models: Entities that cost 1.5x the base.

    Returns:
        A positive integer score.
    """
    base = _base_rus(operation or "")
    model_multiplier = HEAVY_MODEL_MULTIPLIER if model in heavy_models else 1

    return max(1, round(base * _duration_multiplier(duration_ms) * model_multiplier))
