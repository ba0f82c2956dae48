import pytest

from conftest import FakeDbError
from sakila_notes import db_connector
from sakila_notes.db_connector import DatabaseConnection


class StubCursor:
    def __init__(self, rows=None, error=None):
        self.rows = rows or []
        self.error = error
        self.description = None
        self.rowcount = -1
        self.executed = []
        self.closed = False

    def execute(self, sql, params=None):
        self.executed.append((sql, params))
        if self.error:
            raise self.error
        self.description = [('customer_id',), ('num_rentals',)]
        self.rowcount = len(self.rows)

    def fetchall(self):
        return list(self.rows)

    def close(self):
        self.closed = True


class StubConnection:
    def __init__(self, cursor):
        self._cursor = cursor
        self.autocommit = True
        self.commits = 0
        self.rollbacks = 0
        self.closed = False

    def cursor(self):
        return self._cursor

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        self.closed = True


@pytest.fixture
def stub(monkeypatch):
    cursor = StubCursor(rows=[(148, 46), (526, 45)])
    conn = StubConnection(cursor)
    calls = {}

    def connect(**kwargs):
        calls.update(kwargs)
        return conn

    monkeypatch.setattr(db_connector.mariadb, 'connect', connect)
    return cursor, conn, calls


def test_connect_disables_autocommit(stub):
    cursor, conn, calls = stub
    db = DatabaseConnection({'database': 'sakila_test'})
    db.connect()

    assert calls['database'] == 'sakila_test'
    assert conn.autocommit is False
    assert db.database == 'sakila_test'


def test_connect_error_propagates(monkeypatch):
    def connect(**kwargs):
        raise FakeDbError("Access denied", errno=1045)

    monkeypatch.setattr(db_connector.mariadb, 'connect', connect)
    with pytest.raises(FakeDbError):
        DatabaseConnection().connect()


def test_execute_query_and_columns(stub):
    cursor, conn, _ = stub
    with DatabaseConnection() as db:
        rows = db.execute_query("SELECT customer_id, COUNT(*) AS num_rentals FROM rental GROUP BY 1")
        assert rows == [(148, 46), (526, 45)]
        assert db.get_column_names() == ['customer_id', 'num_rentals']
    assert cursor.closed
    assert conn.closed


def test_column_names_before_execute(stub):
    db = DatabaseConnection()
    db.connect()
    with pytest.raises(RuntimeError):
        db.get_column_names()


def test_execute_write_without_commit(stub):
    cursor, conn, _ = stub
    db = DatabaseConnection()
    db.connect()

    db.execute_write("UPDATE customer_vw SET last_name = ? WHERE customer_id = ?",
                     ('SMITH-ALLEN', 1), commit=False)
    assert conn.commits == 0
    assert cursor.executed[-1][1] == ('SMITH-ALLEN', 1)

    db.rollback()
    assert conn.rollbacks == 1


def test_execute_write_error_rolls_back(stub):
    cursor, conn, _ = stub
    cursor.error = FakeDbError("Column 'email' is not updatable", errno=1348)
    db = DatabaseConnection()
    db.connect()

    with pytest.raises(FakeDbError):
        db.execute_write("UPDATE customer_vw SET email = 'x' WHERE customer_id = 1")
    assert conn.rollbacks == 1
    assert conn.commits == 0


def test_get_table_count(stub):
    cursor, _, _ = stub
    cursor.rows = [(599,)]
    db = DatabaseConnection()
    db.connect()
    assert db.get_table_count('customer') == 599
    assert cursor.executed[-1][0] == 'SELECT COUNT(*) FROM customer'


def test_test_connection(stub):
    cursor, _, _ = stub
    db = DatabaseConnection()
    assert not db.test_connection()
    db.connect()
    assert db.test_connection()
    cursor.error = FakeDbError("gone away", errno=2006)
    assert not db.test_connection()


def test_get_explain(stub):
    cursor, _, _ = stub
    db = DatabaseConnection()
    db.connect()
    db.get_explain("SELECT * FROM payment_all")
    assert cursor.executed[-1][0] == 'EXPLAIN SELECT * FROM payment_all'
