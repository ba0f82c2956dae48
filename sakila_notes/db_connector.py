"""
Database Connection Management

This module provides a DatabaseConnection class for managing connections
to the Sakila database on a MySQL or MariaDB server and executing the
statements of the study notes.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import mariadb

from sakila_notes.config import DB_CONFIG

logger = logging.getLogger(__name__)


class DatabaseConnection:
    """
    Manages database connections and statement execution.

    Autocommit stays off, so statements run through execute_write with
    commit=False can be undone with rollback().

    Attributes:
        config (dict): Connection settings passed to mariadb.connect
        conn: MariaDB connection object
        cursor: MariaDB cursor object
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """
        Initialize database connection manager.

        Args:
            config: Optional connection settings overriding DB_CONFIG
        """
        self.config = {**DB_CONFIG, **(config or {})}
        self.conn = None
        self.cursor = None

    @property
    def database(self) -> str:
        return self.config['database']

    def connect(self) -> None:
        """
        Establish connection to the database.

        Raises:
            mariadb.Error: If connection fails
        """
        try:
            self.conn = mariadb.connect(**self.config)
            self.conn.autocommit = False
            self.cursor = self.conn.cursor()
            logger.info("Connected to %s@%s:%s", self.database,
                        self.config['host'], self.config['port'])
        except mariadb.Error as e:
            logger.error("Error connecting to %s: %s", self.database, e)
            raise

    def execute_query(self, sql: str, params: Optional[Tuple] = None) -> List[Tuple]:
        """
        Execute a SQL query and return results.

        Args:
            sql: SQL query string to execute
            params: Optional tuple of parameters for parameterized queries

        Returns:
            List of tuples containing query results

        Raises:
            mariadb.Error: If query execution fails
        """
        try:
            if params:
                self.cursor.execute(sql, params)
            else:
                self.cursor.execute(sql)
            return self.cursor.fetchall()
        except mariadb.Error as e:
            logger.error("Query error: %s", e)
            logger.debug("SQL: %s...", sql[:200])
            raise

    def execute_write(self, sql: str, params: Optional[Tuple] = None,
                      commit: bool = True) -> int:
        """
        Execute a write statement (DDL, INSERT, UPDATE, DELETE).

        Args:
            sql: SQL statement to execute
            params: Optional tuple of parameters for parameterized statements
            commit: Commit after executing; pass False to keep the
                transaction open for a later rollback()

        Returns:
            Number of affected rows

        Raises:
            mariadb.Error: If execution fails; the transaction is rolled back
        """
        try:
            if params:
                self.cursor.execute(sql, params)
            else:
                self.cursor.execute(sql)
            if commit:
                self.conn.commit()
            return self.cursor.rowcount
        except mariadb.Error as e:
            self.conn.rollback()
            logger.warning("Write statement rejected: %s", e)
            raise

    def commit(self) -> None:
        """Commit the current transaction."""
        self.conn.commit()

    def rollback(self) -> None:
        """Roll back the current transaction."""
        self.conn.rollback()

    def get_explain(self, sql: str) -> List[Tuple]:
        """
        Get the query execution plan (EXPLAIN).

        Raises:
            mariadb.Error: If EXPLAIN fails
        """
        return self.execute_query(f"EXPLAIN {sql}")

    def get_table_count(self, table_name: str) -> int:
        """
        Count the rows of a table or view.

        Args:
            table_name: Table or view name

        Returns:
            Row count
        """
        result = self.execute_query(f"SELECT COUNT(*) FROM {table_name}")
        return result[0][0] if result else 0

    def get_column_names(self) -> List[str]:
        """
        Get column names from the last executed query.

        Returns:
            List of column names

        Raises:
            RuntimeError: If no query has been executed yet
        """
        if self.cursor is None or self.cursor.description is None:
            raise RuntimeError("No query has been executed yet")

        return [desc[0] for desc in self.cursor.description]

    def test_connection(self) -> bool:
        """
        Test if the connection is alive and working.

        Returns:
            True if connection is working, False otherwise
        """
        try:
            self.cursor.execute("SELECT 1")
            self.cursor.fetchall()
            return True
        except (mariadb.Error, AttributeError):
            return False

    def close(self) -> None:
        """Close database connection and cursor."""
        if self.cursor:
            self.cursor.close()
            self.cursor = None
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.info("Closed connection to %s", self.database)

    def __enter__(self):
        """Context manager entry: establish connection."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit: close connection."""
        self.close()
        return False

    def __repr__(self) -> str:
        """String representation of the connection."""
        status = "connected" if self.test_connection() else "disconnected"
        return f"DatabaseConnection(database='{self.database}', status='{status}')"
