# flowcheck/rules/library/database.py
"""Rules for database nodes: MongoDB, Postgres, MySQL."""

from __future__ import annotations

import json
import re
from typing import Any, Dict

from flowcheck.rules.accumulator import RuleAccumulator
from flowcheck.rules.error_handling import apply_error_handling
from flowcheck.rules.profiles import AI_FRIENDLY, RUNTIME, STRICT
from flowcheck.rules.properties import is_expression

SQL_READ_DEFAULTS = {"onError": "continueRegularOutput", "retryOnFail": True, "maxTries": 3}
SQL_WRITE_DEFAULTS = {"onError": "stopWorkflow", "retryOnFail": True, "maxTries": 2, "waitBetweenTries": 2000}
MONGO_READ_DEFAULTS = {"onError": "continueRegularOutput", "retryOnFail": True, "maxTries": 3}
MONGO_WRITE_DEFAULTS = {"onError": "continueErrorOutput", "retryOnFail": True, "maxTries": 2, "waitBetweenTries": 1000}

_WRITE_OPS = ("insert", "update", "upsert", "delete", "deleteTable", "findOneAndUpdate", "findOneAndReplace")


def _kw(sql: str, word: str) -> bool:
    return re.search(rf"\b{word}\b", sql, re.IGNORECASE) is not None


def check_sql(acc: RuleAccumulator, query: str) -> RuleAccumulator:
    """Injection and destructive-statement checks on raw SQL."""
    if "${" in query or "{{" in query:
        acc.warn("Query contains template expressions that might be vulnerable to SQL injection",
                 code="SQL_INJECTION_RISK", fix="Use query parameters ($1, ?) instead of interpolation",
                 field="query")
        acc.suggest('Example: "SELECT * FROM users WHERE id = $1" with the id passed as a query parameter')
    if _kw(query, "delete") and not _kw(query, "where"):
        acc.error("DELETE query without WHERE clause will delete all records", code="SQL_DELETE_ALL",
                  fix="Add a WHERE clause", field="query")
    if _kw(query, "update") and _kw(query, "set") and not _kw(query, "where"):
        acc.warn("UPDATE query without WHERE clause will update all records", code="SQL_UPDATE_ALL",
                 fix="Add a WHERE clause", field="query")
    if _kw(query, "truncate"):
        acc.warn("TRUNCATE removes all rows in the table", code="SQL_TRUNCATE", field="query")
    if _kw(query, "drop"):
        acc.error("DROP statements permanently remove database objects", code="SQL_DROP",
                  fix="Run schema changes outside the workflow", field="query", minimum=RUNTIME)
    if re.search(r"select\s+\*", query, re.IGNORECASE):
        acc.suggest("Consider selecting specific columns instead of SELECT *", minimum=STRICT)
    return acc


def _validate_sql_node(acc: RuleAccumulator, config: Dict[str, Any], settings: Dict[str, Any],
                       label: str) -> RuleAccumulator:
    operation = config.get("operation", "executeQuery")
    query = config.get("query") or ""
    if isinstance(query, str) and query.strip():
        check_sql(acc, query)

    if operation in ("execute", "executeQuery") and not query:
        acc.error("SQL query is required", code="MISSING_REQUIRED", fix="Provide the SQL query", field="query")
    if operation in ("insert", "update", "upsert", "delete", "deleteTable") and not config.get("table"):
        acc.error(f"Table name is required for {operation} operation", code="MISSING_REQUIRED", field="table")
    if operation == "update" and not (config.get("updateKey") or config.get("columnToMatchOn")):
        acc.warn("No update key specified", code="MISSING_UPDATE_KEY",
                 fix='Set updateKey to identify which rows to update (e.g. "id")', field="updateKey")
    if operation in ("delete", "deleteTable"):
        has_filter = config.get("deleteKey") or config.get("where") or config.get("deleteCommand") in ("drop", "truncate")
        if not has_filter:
            acc.error("Delete key or WHERE condition is required to identify rows", code="MISSING_REQUIRED",
                      fix='Set deleteKey (e.g. "id")', field="deleteKey")
    if operation in ("select", "get") and not config.get("limit") and config.get("returnAll"):
        acc.warn("Selecting all rows without a limit may return very large result sets",
                 code="UNBOUNDED_RESULT", field="limit", minimum=AI_FRIENDLY)

    is_read = operation in ("select", "get") or (
        operation in ("execute", "executeQuery") and isinstance(query, str) and _kw(query, "select")
        and not any(_kw(query, w) for w in ("insert", "update", "delete")))
    defaults = SQL_READ_DEFAULTS if is_read else SQL_WRITE_DEFAULTS
    return apply_error_handling(acc, settings, defaults, label)


def validate_postgres(acc: RuleAccumulator, config: Dict[str, Any], settings: Dict[str, Any]) -> RuleAccumulator:
    return _validate_sql_node(acc, config, settings, "Postgres")


def validate_mysql(acc: RuleAccumulator, config: Dict[str, Any], settings: Dict[str, Any]) -> RuleAccumulator:
    acc = _validate_sql_node(acc, config, settings, "MySQL")
    if config.get("timezone") is None:
        acc.suggest("Consider setting timezone to ensure consistent date/time handling", minimum=STRICT)
    return acc


def validate_mongodb(acc: RuleAccumulator, config: Dict[str, Any], settings: Dict[str, Any]) -> RuleAccumulator:
    operation = config.get("operation", "find")
    if not config.get("collection"):
        acc.error("Collection name is required", code="MISSING_REQUIRED", field="collection")

    query = config.get("query")
    if isinstance(query, str) and query.strip() and not is_expression(query):
        try:
            json.loads(query)
        except ValueError:
            acc.error("Query must be valid JSON", code="INVALID_JSON",
                      fix='e.g. {"name": "John"}', field="query", minimum=RUNTIME)

    empty_query = not query or (isinstance(query, str) and query.strip() in ("{}", ""))
    if operation == "delete" and empty_query:
        acc.error("Delete without query would remove all documents", code="DESTRUCTIVE_WITHOUT_FILTER",
                  fix="Add a query to select the documents to delete", field="query")
    elif operation == "update" and empty_query:
        acc.warn("Update without query will affect all documents", code="DESTRUCTIVE_WITHOUT_FILTER",
                 field="query")
    elif operation == "insert" and not (config.get("fields") or config.get("documents")):
        acc.error("Document data is required for insert", code="MISSING_REQUIRED", field="fields")
    elif operation == "find":
        options = config.get("options") if isinstance(config.get("options"), dict) else {}
        if not options.get("limit") and not config.get("limit"):
            acc.warn("find without a limit may return an unbounded number of documents",
                     code="UNBOUNDED_RESULT", field="limit", minimum=AI_FRIENDLY)

    defaults = MONGO_WRITE_DEFAULTS if operation in _WRITE_OPS else MONGO_READ_DEFAULTS
    return apply_error_handling(acc, settings, defaults, "MongoDB")
