"""Internal types for the policy engine."""

from __future__ import annotations

import enum


class OperationClass(enum.Enum):
    READ_ONLY_QUERY = "read_only_query"
    GUARDED_MUTATION = "guarded_mutation"    # UPDATE/DELETE with a WHERE guard
    DATA_DEFINITION = "data_definition"      # CREATE, ALTER, DROP, TRUNCATE
    DIAGNOSTIC_BATCH = "diagnostic_batch"    # SELECT + SET STATISTICS/SHOWPLAN toggles
