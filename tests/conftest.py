import mariadb
import pytest


class FakeDbError(mariadb.ProgrammingError):
    """A driver error with a settable server error number."""

    def __init__(self, message, errno=None):
        super().__init__(message)
        self.errno = errno


class FakeConnection:
    """
    Stands in for DatabaseConnection.

    responses: list of (sql substring, columns, rows) matched in order
    errors: dict of sql substring -> exception raised when executed
    present_tables: tables reported by information_schema (None means all)
    """

    def __init__(self, responses=None, errors=None, present_tables=None, counts=None):
        self.responses = list(responses or [])
        self.errors = dict(errors or {})
        self.present_tables = present_tables
        self.counts = dict(counts or {})
        self.executed = []
        self.commits = 0
        self.rollbacks = 0
        self.closed = False
        self._columns = None

    def _raise_if_scripted(self, sql):
        for fragment, error in self.errors.items():
            if fragment in sql:
                raise error

    def execute_query(self, sql, params=None):
        self.executed.append(('query', sql, params))
        self._raise_if_scripted(sql)

        if 'information_schema.tables' in sql:
            self._columns = ['table_name']
            tables = params or ()
            if self.present_tables is not None:
                tables = [t for t in tables if t in self.present_tables]
            return [(t,) for t in tables]

        for fragment, columns, rows in self.responses:
            if fragment in sql:
                self._columns = list(columns)
                return list(rows)

        self._columns = []
        return []

    def execute_write(self, sql, params=None, commit=True):
        self.executed.append(('write', sql, params))
        try:
            self._raise_if_scripted(sql)
        except mariadb.Error:
            self.rollbacks += 1
            raise
        if commit:
            self.commits += 1
        return 1

    def get_column_names(self):
        if self._columns is None:
            raise RuntimeError("No query has been executed yet")
        return self._columns

    def get_table_count(self, table_name):
        return self.counts.get(table_name, 0)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        self.closed = True

    def statements(self, kind=None):
        return [sql for k, sql, _ in self.executed if kind is None or k == kind]


@pytest.fixture
def fake_conn():
    return FakeConnection()


@pytest.fixture
def expected_dir(tmp_path):
    path = tmp_path / "expected"
    path.mkdir()
    return path
