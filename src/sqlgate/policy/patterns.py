"""Pattern scanner: named structural rules for common injection idioms.

Rules run against the original query text (comments included), in the
order a policy lists them; the first match wins. A rule pattern may embed
`{verbs}`, which is replaced by an alternation of the policy's denied
statement verbs when the rule set is compiled.

Every pattern here is linear: no nested quantifiers, and comment rules only
look inside comment bodies located by a plain scan.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from functools import lru_cache

from sqlgate.diagnostics import Span
from sqlgate.policy.normalize import comment_bodies

VERBS_PLACEHOLDER = "{verbs}"

# Verbs that can open a statement of their own. Only these feed `{verbs}`:
# chaining and comment rules should not fire on ordinary words like SET.
STATEMENT_VERBS = frozenset({
    "SELECT", "INSERT", "UPDATE", "DELETE", "MERGE", "REPLACE",
    "CREATE", "ALTER", "DROP", "TRUNCATE",
    "EXEC", "EXECUTE", "GRANT", "REVOKE",
    "BACKUP", "RESTORE", "KILL", "SHUTDOWN", "DBCC",
})

_NEVER = "(?!)"


@dataclass(frozen=True)
class PatternRule:
    """A named regex with the reason reported when it matches.

    `scope` is "text" (whole query) or "comments" (each comment body).
    """

    name: str
    pattern: str
    reason: str
    scope: str = "text"
    case_sensitive: bool = False

    def compile(self, verbs: Iterable[str] = ()) -> re.Pattern[str]:
        pattern = self.pattern
        if VERBS_PLACEHOLDER in pattern:
            ordered = sorted(verbs, key=lambda v: (-len(v), v))
            alternation = "|".join(re.escape(v) for v in ordered) or _NEVER
            pattern = pattern.replace(VERBS_PLACEHOLDER, f"(?:{alternation})")
        flags = 0 if self.case_sensitive else re.IGNORECASE
        return re.compile(pattern, flags)


# -- Built-in rule catalogue ----------------------------------------------------

STATEMENT_CHAINING = PatternRule(
    "statement-chaining",
    r";\s*{verbs}(?![A-Za-z0-9_])",
    "Statement chaining detected: a statement terminator is followed by a denied command.",
)
UNION_INJECTION = PatternRule(
    "union-injection",
    r"\bUNION\s+(?:ALL\s+)?SELECT\b",
    "UNION-based queries are not allowed.",
)
COMMENT_SMUGGLED_KEYWORD = PatternRule(
    "comment-smuggled-keyword",
    r"(?<![A-Za-z0-9_]){verbs}(?![A-Za-z0-9_])",
    "Comment contains a denied command (possible comment-based injection).",
    scope="comments",
)
DYNAMIC_EXECUTION = PatternRule(
    "dynamic-execution",
    r"\bEXEC(?:UTE)?\s*\(|\b(?:sp|xp)_",
    "Dynamic SQL execution and system or extended stored procedures are not allowed.",
)
BULK_EXTERNAL_DATA = PatternRule(
    "bulk-external-data",
    r"\bBULK\s+INSERT\b|\bOPEN(?:ROWSET|DATASOURCE|QUERY|XML)\b",
    "Bulk operations and external data sources are not allowed.",
)
SYSTEM_INTROSPECTION = PatternRule(
    "system-introspection",
    r"@@|\bSYSTEM_USER\b|\b(?:USER_NAME|SUSER_S?NAME|DB_NAME|HOST_NAME)\s*\(",
    "System variables and session introspection functions are not allowed.",
)
TIMING_ATTACK = PatternRule(
    "timing-attack",
    r"\bWAITFOR\s+(?:DELAY|TIME)\b",
    "Time-delay commands are not allowed.",
)
CHAR_CODE_OBFUSCATION = PatternRule(
    "char-code-obfuscation",
    r"\+\s*(?:N?CHAR|ASCII)\s*\(|\b(?:N?CHAR|ASCII)\s*\([^()]*\)\s*\+",
    "String concatenation with character-code functions is not allowed (possible obfuscation).",
)
# Word-bounded on purpose: VARCHAR( and NVARCHAR( casts are not character-code calls.
CHAR_CONVERSION = PatternRule(
    "char-conversion",
    r"\b(?:N?CHAR|ASCII)\s*\(",
    "Character conversion functions are not allowed as they may be used for obfuscation.",
)
DBCC_MODIFICATION = PatternRule(
    "dbcc-modification",
    r"\bDBCC\s+(?:CHECKDB|CHECKALLOC|CHECKTABLE|CHECKFILEGROUP|WRITEPAGE|PAGE)\b",
    "DBCC commands that check or modify pages are not allowed in diagnostic batches.",
)
SERVER_CONFIGURATION = PatternRule(
    "server-configuration",
    r"\bEXEC(?:UTE)?\s+(?:sp_configure|xp_)|\bxp_(?:cmdshell|dirtree|fileexist)",
    "Server configuration and file system procedures are not allowed.",
)
CREDENTIAL_REFERENCE = PatternRule(
    "credential-reference",
    r"PASSWORD|LOGIN",
    "Security-sensitive references (passwords, logins) are not allowed in diagnostic batches.",
)

# Whole-statement shapes accepted in diagnostic batches.
STATISTICS_TOGGLE = PatternRule(
    "statistics-toggle",
    r"SET\s+STATISTICS\s+(?:IO|TIME|PROFILE|XML)(?:\s*,\s*(?:IO|TIME|PROFILE|XML))*\s+(?:ON|OFF)",
    "SET STATISTICS IO|TIME|PROFILE|XML ON|OFF",
)
SHOWPLAN_TOGGLE = PatternRule(
    "showplan-toggle",
    r"SET\s+SHOWPLAN_(?:ALL|TEXT|XML)\s+(?:ON|OFF)",
    "SET SHOWPLAN_ALL|TEXT|XML ON|OFF",
)

# Qualifiers that definition statements may never touch.
SYSTEM_DATABASE = PatternRule(
    "system-database",
    r"(?<![\w\[])\[?(?:master|msdb|model|tempdb)\]?\s*\.",
    "Operations on system databases (master, msdb, model, tempdb) are not allowed.",
)
SYSTEM_CATALOG = PatternRule(
    "system-catalog",
    r"(?<![\w\[])\[?(?:sys|INFORMATION_SCHEMA)\]?\s*\.",
    "Operations on system catalog schemas (sys, INFORMATION_SCHEMA) are not allowed.",
)

RULE_CATALOGUE: dict[str, PatternRule] = {
    rule.name: rule
    for rule in (
        STATEMENT_CHAINING,
        UNION_INJECTION,
        COMMENT_SMUGGLED_KEYWORD,
        DYNAMIC_EXECUTION,
        BULK_EXTERNAL_DATA,
        SYSTEM_INTROSPECTION,
        TIMING_ATTACK,
        CHAR_CODE_OBFUSCATION,
        CHAR_CONVERSION,
        DBCC_MODIFICATION,
        SERVER_CONFIGURATION,
        CREDENTIAL_REFERENCE,
        STATISTICS_TOGGLE,
        SHOWPLAN_TOGGLE,
        SYSTEM_DATABASE,
        SYSTEM_CATALOG,
    )
}


# -- Scanning -------------------------------------------------------------------


@lru_cache(maxsize=64)
def compile_rules(
    rules: tuple[PatternRule, ...], verbs: frozenset[str]
) -> tuple[tuple[PatternRule, re.Pattern[str]], ...]:
    """Compile a rule sequence once per (rules, verbs) pair."""
    return tuple((rule, rule.compile(verbs)) for rule in rules)


def statement_verbs(keywords: Iterable[str]) -> frozenset[str]:
    """The subset of `keywords` that can open a statement."""
    return frozenset(k for k in keywords if k in STATEMENT_VERBS)


def scan_patterns(
    sql: str,
    rules: tuple[PatternRule, ...],
    verbs: frozenset[str] = frozenset(),
) -> tuple[PatternRule, Span] | None:
    """Return the first rule that matches `sql`, with the span of the match."""
    bodies: list[Span] | None = None
    for rule, regex in compile_rules(rules, verbs):
        if rule.scope == "comments":
            if bodies is None:
                bodies = comment_bodies(sql)
            for body in bodies:
                match = regex.search(sql, body.start, body.end)
                if match is not None:
                    return rule, Span(match.start(), match.end())
            continue

        match = regex.search(sql)
        if match is not None:
            return rule, Span(match.start(), match.end())
    return None


def matches_statement(statement: str, rules: tuple[PatternRule, ...]) -> PatternRule | None:
    """Return the first rule whose pattern covers the whole statement."""
    for rule, regex in compile_rules(rules, frozenset()):
        if regex.fullmatch(statement) is not None:
            return rule
    return None
