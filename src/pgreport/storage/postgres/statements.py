"""Statements understood by the reporting database.

The far end exposes lookup functions that create rows on first use and
plain tables for per-run rows. Lookups return one row with one column.
"""

GET_SESSION_SQL = "SELECT GET_SESSION({token})"
GET_SUITE_NAME_SQL = "SELECT GET_TEST_SUITE({name})"
GET_TEST_NAME_SQL = "SELECT GET_TEST_NAME({suite_name_id}, {name}{description})"

SUITE_RUN_INSERT_SQL = (
    "INSERT INTO suite_results (sr_id, session_id, suite_id) "
    "VALUES (DEFAULT, {session_id}, {suite_name_id}) RETURNING sr_id"
)
SUITE_RUN_UPDATE_SQL = (
    "UPDATE suite_results SET finished_at=NOW(), duration={duration}, "
    "suite_result={status} WHERE sr_id={suite_run_id}"
)

TEST_RUN_INSERT_SQL = (
    "INSERT INTO test_results (tr_id, session_id, suite_id, test_id) "
    "VALUES (DEFAULT, {session_id}, {suite_run_id}, {test_name_id}) RETURNING tr_id"
)
TEST_RUN_UPDATE_SQL = (
    "UPDATE test_results SET finished_at=NOW(), duration={duration}, "
    "test_result={status} WHERE tr_id={test_id}"
)

SESSION_CLOSE_SQL = "UPDATE sessions SET end_time=NOW() WHERE session_id={session_id} AND end_time IS NULL"

DATABASES_SQL = "SELECT datname FROM pg_database"


def sql_literal(value: str) -> str:
    """Quote `value` as a standard SQL string literal."""
    return "'" + value.replace("'", "''") + "'"


def get_session(token: str) -> str:
    return GET_SESSION_SQL.format(token=sql_literal(token))


def get_suite_name(name: str) -> str:
    return GET_SUITE_NAME_SQL.format(name=sql_literal(name))


def get_test_name(suite_name_id: int, name: str, description_literal: str | None = None) -> str:
    """Build the test name lookup.

    `description_literal` must already be an escaped, quoted literal.
    """
    description = f", {description_literal}" if description_literal else ""
    return GET_TEST_NAME_SQL.format(
        suite_name_id=suite_name_id, name=sql_literal(name), description=description
    )


def insert_suite_run(session_id: int, suite_name_id: int) -> str:
    return SUITE_RUN_INSERT_SQL.format(session_id=session_id, suite_name_id=suite_name_id)


def update_suite_run(suite_run_id: int, duration_ms: int, passed: bool) -> str:
    return SUITE_RUN_UPDATE_SQL.format(
        suite_run_id=suite_run_id, duration=duration_ms, status=1 if passed else 0
    )


def insert_test_run(session_id: int, suite_run_id: int, test_name_id: int) -> str:
    return TEST_RUN_INSERT_SQL.format(
        session_id=session_id, suite_run_id=suite_run_id, test_name_id=test_name_id
    )


def update_test_run(test_id: int, duration_ms: int, status: int) -> str:
    return TEST_RUN_UPDATE_SQL.format(test_id=test_id, duration=duration_ms, status=status)


def close_session(session_id: int) -> str:
    return SESSION_CLOSE_SQL.format(session_id=session_id)
