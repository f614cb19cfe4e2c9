from __future__ import annotations

import logging
from typing import Tuple

import sqlparse
from sqlparse.sql import Comment
from sqlparse.tokens import DDL, DML, Keyword, Punctuation
from sqlparse.tokens import Comment as CommentToken

logger = logging.getLogger(__name__)

# Statement keywords that never belong in a join-filter expression
DANGEROUS_KEYWORDS = {
    "INSERT", "UPDATE", "DELETE", "MERGE", "DROP", "ALTER", "TRUNCATE",
    "EXEC", "EXECUTE", "CREATE", "GRANT", "REVOKE", "DENY",
}


def _check_token_safety(token) -> tuple[bool, str]:
    """Recursively check a token and its children for non-SELECT content."""
    if isinstance(token, Comment) or token.ttype in CommentToken:
        return False, "Comment found in expression"

    if token.ttype is not None:
        value = str(token).strip().upper()
        if token.ttype in (DML, DDL) and value != "SELECT":
            return False, f"Non-SELECT DML/DDL token: {value}"
        if token.ttype is Keyword and value in DANGEROUS_KEYWORDS:
            return False, f"Dangerous keyword: {value}"

    if token.is_group:
        for sub in token.tokens:
            safe, reason = _check_token_safety(sub)
            if not safe:
                return False, reason

    return True, ""


def is_safe_sql(sql: str) -> Tuple[bool, str]:
    """
    Check that a generated expression is one plain SELECT statement.

    Returns:
        Tuple of (is_safe, error_reason)
    """
    candidate = sql.strip()
    if not candidate:
        return False, "Empty SQL"

    parsed = sqlparse.parse(candidate)
    if len(parsed) != 1:
        return False, f"Expected 1 statement, got {len(parsed)}"

    stmt = parsed[0]
    stmt_type = stmt.get_type()
    if stmt_type is None or stmt_type.upper() != "SELECT":
        return False, f"Only SELECT statements allowed, got: {stmt_type}"

    safe, reason = _check_token_safety(stmt)
    if not safe:
        logger.debug(f"Rejected expression: {reason}")
        return False, reason

    if any(token.ttype is Punctuation and token.value == ";" for token in stmt.flatten()):
        return False, "Multiple statements not allowed (semicolon in expression)"

    return True, ""
