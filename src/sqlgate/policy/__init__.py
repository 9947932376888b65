"""Policy engine: normalize, split, scan, and return a single verdict."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from sqlgate.diagnostics import Diagnostic, ValidationResult, codes
from sqlgate.policy._types import OperationClass
from sqlgate.policy.keywords import find_keyword, keyword_regex, starts_with_keyword
from sqlgate.policy.normalize import normalize, split_statements
from sqlgate.policy.patterns import matches_statement, scan_patterns
from sqlgate.policy.policies import BUILTIN_POLICIES, ValidationPolicy, get_policy

__all__ = [
    "BUILTIN_POLICIES",
    "OperationClass",
    "ValidationPolicy",
    "check_length",
    "get_policy",
    "run_policy",
    "validate",
]

logger = logging.getLogger(__name__)

INTERNAL_ERROR_REASON = "Query validation failed due to an internal error."


def validate(
    operation_class: OperationClass | str,
    query_text: str,
    policy_overrides: Mapping[str, object] | None = None,
) -> ValidationResult:
    """Validate `query_text` against the policy for `operation_class`.

    Never raises. Any unexpected condition, including an unknown operation
    class or a bad override, yields a rejection with a generic reason.
    """
    try:
        policy = get_policy(operation_class, policy_overrides)
        return run_policy(policy, query_text)
    except Exception:
        logger.exception("validator failed closed for operation %r", operation_class)
        return ValidationResult.reject(
            Diagnostic.error(codes.INTERNAL_ERROR, INTERNAL_ERROR_REASON)
        )


def run_policy(policy: ValidationPolicy, sql: str) -> ValidationResult:
    """Run the full check sequence of `policy` on a SQL string.

    Steps:
        1. Normalize (strip comments, collapse whitespace); reject if empty
        2. Split into candidate statements; reject batches unless allowed
        3. Per statement: leading verb, then object type when applicable
        4. Guard clause (textual containment)
        5. Keyword denylist on the normalized text
        6. Pattern rules on the original text
        7. Length limit on the original text
        8. Protected targets on the original text

    The first failing step decides the result.
    """
    if not isinstance(sql, str):
        return ValidationResult.reject(
            Diagnostic.error(codes.EMPTY_INPUT, "Query must be a non-empty string.")
        )

    # Step 1: Normalize
    normalized = normalize(sql)
    statements = split_statements(normalized)
    if not statements:
        return _reject(
            Diagnostic.error(codes.EMPTY_INPUT, "empty query")
            .note("the query is empty after removing comments and whitespace"),
            normalized,
        )

    # Step 2: Batch check
    if len(statements) > 1 and not policy.allow_multiple_statements:
        return _reject(
            Diagnostic.error(
                codes.MULTIPLE_STATEMENTS, "Multiple SQL statements are not allowed."
            ).note(f"submit a single {_verb_list(policy)} statement"),
            normalized,
        )

    # Step 3: Statement shape
    for index, statement in enumerate(statements, start=1):
        diag = _check_statement(policy, statement, index=index, batch=len(statements) > 1)
        if diag is not None:
            return _reject(diag, normalized)

    # Step 4: Guard clause
    if policy.requires_guard_clause and policy.guard_token not in normalized.upper():
        guard = policy.guard_token.strip()
        return _reject(
            Diagnostic.error(
                codes.MISSING_GUARD_CLAUSE,
                f"{_verb_list(policy)} queries must include a {guard} clause for security reasons.",
            ).note("a statement without a guard would affect every row in the table"),
            normalized,
        )

    # Step 5: Keywords
    hit = find_keyword(normalized, policy.effective_denied_keywords)
    if hit is not None:
        keyword, span = hit
        return _reject(
            Diagnostic.error(
                codes.DENIED_KEYWORD,
                f"Dangerous keyword '{keyword}' detected in query.",
                rule=keyword,
            ).span(span),
            normalized,
        )

    # Step 6: Patterns
    pattern_hit = scan_patterns(sql, policy.denied_patterns, policy.scan_verbs)
    if pattern_hit is not None:
        rule, span = pattern_hit
        return _reject(
            Diagnostic.error(codes.DENIED_PATTERN, rule.reason, rule=rule.name).span(span),
            normalized,
        )

    # Step 7: Length
    diag = check_length(policy, sql)
    if diag is not None:
        return _reject(diag, normalized)

    # Step 8: Protected targets
    target_hit = scan_patterns(sql, policy.protected_targets)
    if target_hit is not None:
        rule, span = target_hit
        return _reject(
            Diagnostic.error(codes.PROTECTED_TARGET, rule.reason, rule=rule.name).span(span),
            normalized,
        )

    return ValidationResult.accept(normalized)


def check_length(policy: ValidationPolicy, sql: str) -> Diagnostic | None:
    """Length limit on the raw text. Callers may run this before `validate`."""
    if len(sql) <= policy.max_length:
        return None
    return Diagnostic.error(
        codes.INPUT_TOO_LONG,
        f"Query is too long. Maximum allowed length is {policy.max_length:,} characters.",
    ).note(f"query has {len(sql):,} characters")


def _reject(diag: Diagnostic, normalized: str) -> ValidationResult:
    return ValidationResult.reject(diag, normalized_query=normalized)


def _verb_list(policy: ValidationPolicy) -> str:
    return "/".join(sorted(policy.required_leading_verbs))


def _leading_verb(policy: ValidationPolicy, statement: str) -> str | None:
    for verb in sorted(policy.required_leading_verbs):
        if starts_with_keyword(statement, verb):
            return verb
    return None


def _check_statement(
    policy: ValidationPolicy, statement: str, *, index: int, batch: bool
) -> Diagnostic | None:
    """Leading-verb and object-type checks for one candidate statement."""
    verb = _leading_verb(policy, statement)
    if verb is None and matches_statement(statement, policy.allowed_statements) is not None:
        return None

    if verb is None:
        allowed = sorted(policy.required_leading_verbs)
        allowed.extend(rule.reason for rule in policy.allowed_statements)
        where = f"Statement {index} of the batch" if batch else "Query"
        expected = allowed[0] if len(allowed) == 1 else f"one of: {', '.join(allowed)}"
        return Diagnostic.error(
            codes.INVALID_LEADING_VERB,
            f"{where} must start with {expected}.",
        ).note(f"rejected statement: {statement[:80]}")

    if policy.allowed_object_types is not None and verb in policy.object_type_verbs:
        if not any(keyword_regex(t).search(statement.upper()) for t in policy.allowed_object_types):
            return Diagnostic.error(
                codes.DISALLOWED_OBJECT_TYPE,
                f"Object type must be one of: {', '.join(sorted(policy.allowed_object_types))}.",
            ).note(f"rejected statement: {statement[:80]}")
    return None
