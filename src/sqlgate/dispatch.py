"""Tool dispatch: pick an operation class, validate, and only then execute.

A rejected query never reaches the adapter. Connection and mode state
(read-only, strict, row cap, policy overrides) come in through
DispatchContext; nothing here is process-wide.
"""

from __future__ import annotations

import enum
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field

from sqlgate import auditlog
from sqlgate.adapters._base import AdapterError, DatabaseAdapter, ExecutionResult
from sqlgate.diagnostics import Diagnostic, ValidationResult
from sqlgate.policy import OperationClass, check_length, get_policy, validate
from sqlgate.strict import check_strict

logger = logging.getLogger(__name__)

DEFAULT_MAX_ROWS = 10_000


class Tool(enum.Enum):
    READ_DATA = "read_data"
    UPDATE_DATA = "update_data"
    EXECUTE_DDL = "execute_ddl"
    DBA_READ_DATA = "dba_read_data"


TOOL_OPERATIONS: dict[Tool, OperationClass] = {
    Tool.READ_DATA: OperationClass.READ_ONLY_QUERY,
    Tool.UPDATE_DATA: OperationClass.GUARDED_MUTATION,
    Tool.EXECUTE_DDL: OperationClass.DATA_DEFINITION,
    Tool.DBA_READ_DATA: OperationClass.DIAGNOSTIC_BATCH,
}

WRITE_TOOLS = frozenset({Tool.UPDATE_DATA, Tool.EXECUTE_DDL})
_ROW_TOOLS = frozenset({Tool.READ_DATA, Tool.DBA_READ_DATA})

# Error codes in the failure envelope.
UNKNOWN_TOOL = "UNKNOWN_TOOL"
TOOL_NOT_AVAILABLE = "TOOL_NOT_AVAILABLE"
SECURITY_VALIDATION_FAILED = "SECURITY_VALIDATION_FAILED"
STRICT_VALIDATION_FAILED = "STRICT_VALIDATION_FAILED"
EXECUTION_FAILED = "EXECUTION_FAILED"

_UNSAFE_COLUMN_CHARS = re.compile(r"[^\w\s\-.]")

# Driver error fragments that are safe to surface, and their user-facing forms.
# None means pass the driver message through unchanged.
_SAFE_ERRORS: tuple[tuple[str, str | None], ...] = (
    ("invalid object name", None),
    ("invalid column name", None),
    ("already exists", "Object already exists"),
    ("does not exist", "Object does not exist"),
    ("syntax error", "SQL syntax error"),
    ("permission", "Insufficient permissions for this operation"),
)


@dataclass(frozen=True)
class DispatchContext:
    overrides: Mapping[OperationClass, Mapping[str, object]] = field(default_factory=dict)
    read_only: bool = False
    strict: bool = False
    max_rows: int = DEFAULT_MAX_ROWS
    db_name: str | None = None
    audit: bool = False


@dataclass
class DispatchResult:
    tool: str
    success: bool
    message: str
    error: str | None = None
    operation: OperationClass | None = None
    validation: ValidationResult | None = None
    execution: ExecutionResult | None = None

    def to_dict(self) -> dict:
        d: dict = {"success": self.success, "tool": self.tool, "message": self.message}
        if self.error is not None:
            d["error"] = self.error
        if self.operation is not None:
            d["operation"] = self.operation.value
        if self.validation is not None and self.validation.code is not None:
            d["code"] = str(self.validation.code)
            if self.validation.rule is not None:
                d["rule"] = self.validation.rule
        if self.execution is not None:
            d["columns"] = self.execution.columns
            d["data"] = self.execution.rows
            d["row_count"] = self.execution.row_count
            d["truncated"] = self.execution.truncated
            d["duration_ms"] = self.execution.duration_ms
        return d


def available_tools(context: DispatchContext) -> list[Tool]:
    """Tools exposed under `context`; read-only mode hides the write tools."""
    if context.read_only:
        return [t for t in Tool if t not in WRITE_TOOLS]
    return list(Tool)


def _truncate(sql: str, limit: int) -> str:
    return sql if len(sql) <= limit else sql[:limit] + "..."


def _safe_error_message(message: str) -> str:
    lowered = message.lower()
    for fragment, replacement in _SAFE_ERRORS:
        if fragment in lowered:
            return replacement if replacement is not None else message
    return "Database operation failed"


def sanitize_columns(result: ExecutionResult) -> ExecutionResult:
    """Strip characters outside `[\\w\\s\\-.]` from column names."""
    mapping: dict[str, str] = {}
    for column in result.columns:
        clean = _UNSAFE_COLUMN_CHARS.sub("", column)
        if clean != column:
            logger.warning("Column name sanitized: %r -> %r", column, clean)
        mapping[column] = clean

    if all(k == v for k, v in mapping.items()):
        return result
    return ExecutionResult(
        columns=[mapping[c] for c in result.columns],
        rows=[{mapping[k]: v for k, v in row.items()} for row in result.rows],
        row_count=result.row_count,
        truncated=result.truncated,
        duration_ms=result.duration_ms,
    )


def _pre_validate(op: OperationClass, sql: str, context: DispatchContext) -> ValidationResult:
    """Bound the input length before any scanning, then run the validator."""
    overrides = context.overrides.get(op)
    try:
        policy = get_policy(op, overrides)
    except ValueError:
        # validate() fails closed on the same error and logs it.
        return validate(op, sql, overrides)
    if isinstance(sql, str):
        diag = check_length(policy, sql)
        if diag is not None:
            return ValidationResult.reject(diag)
    return validate(op, sql, overrides)


def _record(context: DispatchContext, result: DispatchResult, sql: str) -> DispatchResult:
    if context.audit:
        execution = result.execution
        auditlog.log_dispatch(
            tool=result.tool,
            operation=result.operation.value if result.operation else None,
            sql=sql,
            accepted=result.validation is not None and result.validation.is_valid,
            code=str(result.validation.code) if result.validation and result.validation.code else None,
            reason=result.validation.reason if result.validation else None,
            db=context.db_name,
            row_count=execution.row_count if execution else None,
            duration_ms=execution.duration_ms if execution else None,
            error=result.error,
        )
    return result


async def dispatch(
    tool: Tool | str,
    sql: str,
    adapter: DatabaseAdapter,
    context: DispatchContext | None = None,
) -> DispatchResult:
    """Validate `sql` for `tool` and, if accepted, execute it on `adapter`.

    The original text is what gets executed; the normalized form is only
    used for checking.
    """
    context = context or DispatchContext()

    try:
        selected = Tool(tool)
    except ValueError:
        return _record(context, DispatchResult(
            tool=str(tool), success=False, error=UNKNOWN_TOOL,
            message=f"Unknown tool '{tool}'. Valid: {', '.join(t.value for t in Tool)}",
        ), sql)

    if selected not in available_tools(context):
        return _record(context, DispatchResult(
            tool=selected.value, success=False, error=TOOL_NOT_AVAILABLE,
            message=f"Tool '{selected.value}' is not available in read-only mode.",
        ), sql)

    op = TOOL_OPERATIONS[selected]
    validation = _pre_validate(op, sql, context)
    if not validation.is_valid:
        logger.warning(
            "SQL security validation failed: %s. Query: %s",
            validation.reason, _truncate(sql if isinstance(sql, str) else repr(sql), 100),
        )
        return _record(context, DispatchResult(
            tool=selected.value, success=False, error=SECURITY_VALIDATION_FAILED,
            message=f"Security validation failed: {validation.reason}",
            operation=op, validation=validation,
        ), sql)

    if context.strict:
        diag: Diagnostic | None = check_strict(op, sql)
        if diag is not None:
            logger.warning("Strict validation failed: %s. Query: %s", diag.message, _truncate(sql, 100))
            return _record(context, DispatchResult(
                tool=selected.value, success=False, error=STRICT_VALIDATION_FAILED,
                message=f"Strict validation failed: {diag.message}",
                operation=op, validation=ValidationResult.reject(diag),
            ), sql)

    logger.info("Executing validated %s query: %s", op.value, _truncate(sql, 200))
    max_rows = context.max_rows if selected in _ROW_TOOLS else None
    try:
        execution = await adapter.execute(sql, max_rows=max_rows)
    except AdapterError as e:
        logger.error("%s failed: %s", selected.value, e)
        return _record(context, DispatchResult(
            tool=selected.value, success=False, error=EXECUTION_FAILED,
            message=f"Failed to execute query: {_safe_error_message(str(e))}",
            operation=op, validation=validation,
        ), sql)

    if execution.truncated:
        logger.warning("Query results limited to %d records", context.max_rows)

    return _record(context, DispatchResult(
        tool=selected.value, success=True,
        message=f"{op.value} executed successfully.",
        operation=op, validation=validation, execution=sanitize_columns(execution),
    ), sql)
