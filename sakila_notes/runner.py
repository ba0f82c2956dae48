"""
Exercise Runner

Runs the statements of the study notes against the Sakila database, checks
each result set against its recorded expectation and reports the outcome.
Statements that modify data through a view are always rolled back, so the
sample database is left as it was.
"""

import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import mariadb
import pandas as pd
from tabulate import tabulate

from sakila_notes.config import RESULTS_DIR, RUNNER_CONFIG, TIMESTAMP_FORMAT
from sakila_notes.db_connector import DatabaseConnection
from sakila_notes.exercises import get_query, get_query_info, list_queries
from sakila_notes.results_store import load_expected, save_expected
from sakila_notes.utils import compare_results, format_time
from sakila_notes.views import install_views

logger = logging.getLogger(__name__)

FAILED_STATUSES = ('mismatch', 'error', 'unexpected-success')


def error_matches(error: Exception, expect_error: Dict[str, Any]) -> bool:
    """
    Check whether a database error is the rejection an exercise expects.

    The server's error number decides when the driver reports one;
    otherwise the expected text must appear in the message.
    """
    errno = getattr(error, 'errno', None)
    if errno:
        return errno == expect_error['errno']
    return expect_error['match'].lower() in str(error).lower()


def project_columns(columns: Sequence[str], rows: Sequence[Sequence[Any]],
                    keep: Optional[Sequence[str]]) -> List[List[Any]]:
    """
    Keep only the named columns of a result set.

    Raises:
        KeyError: If a kept column is not in the result
    """
    if not keep:
        return [list(row) for row in rows]
    columns = list(columns)
    missing = [name for name in keep if name not in columns]
    if missing:
        raise KeyError(f"Columns {missing} not in result columns {columns}")
    indexes = [columns.index(name) for name in keep]
    return [[row[i] for i in indexes] for row in rows]


class ExerciseRunner:
    """
    Runs exercises and compares them with recorded expectations.

    Attributes:
        keys (list): Exercise keys to run, in order
        record (bool): Write expectations instead of comparing
        results (list): One result dictionary per executed exercise
    """

    def __init__(self, keys: Optional[Iterable[str]] = None, record: bool = False,
                 expected_dir: Optional[Path] = None,
                 conn: Optional[DatabaseConnection] = None,
                 tolerance: Optional[float] = None):
        """
        Initialize the runner.

        Args:
            keys: Exercise keys to run (default: the whole catalog)
            record: Record result sets as the new expectations
            expected_dir: Directory of recorded expectations
            conn: An open connection to reuse; the runner will not close it
            tolerance: Float tolerance (default from RUNNER_CONFIG)
        """
        self.keys = list(keys) if keys is not None else list_queries()
        for key in self.keys:
            get_query_info(key)
        self.record = record
        self.expected_dir = expected_dir
        self.tolerance = RUNNER_CONFIG['float_tolerance'] if tolerance is None else tolerance
        self.conn = conn
        self._owns_conn = conn is None
        self.installed_views = set()
        self.results = []

    def setup(self) -> None:
        """
        Open the connection and install the views the selected exercises need.
        """
        print("=" * 70)
        print("Sakila Notes Exercise Runner")
        print("=" * 70)
        print()

        if self.conn is None:
            self.conn = DatabaseConnection()
            self.conn.connect()

        if RUNNER_CONFIG['install_views']:
            required = []
            for key in self.keys:
                required.extend(get_query_info(key)['requires'])
            if required:
                print("Installing views...")
                self.ensure_views(required)
                print()

    def ensure_views(self, names: Iterable[str]) -> None:
        """Install views that this runner has not installed yet."""
        pending = [name for name in dict.fromkeys(names) if name not in self.installed_views]
        if pending:
            for name in install_views(self.conn, pending):
                self.installed_views.add(name)

    def _run_modification(self, info: dict, sql: str) -> Tuple[List[str], List[Tuple]]:
        # Changes stay inside one transaction that is always rolled back
        try:
            affected = self.conn.execute_write(sql, commit=False)
            if info['verify_sql']:
                rows = self.conn.execute_query(info['verify_sql'])
                return self.conn.get_column_names(), rows
            return ['rows_affected'], [(affected,)]
        finally:
            self.conn.rollback()

    def _execute(self, info: dict, sql: str) -> Tuple[List[str], List[Tuple]]:
        kind = info['kind']

        if kind in ('query', 'describe'):
            rows = self.conn.execute_query(sql)
            return self.conn.get_column_names(), rows

        if kind == 'view':
            self.conn.execute_write(sql)
            self.installed_views.add(info['view'])
            verify_sql = info['verify_sql'] or f"SELECT * FROM {info['view']}"
            rows = self.conn.execute_query(verify_sql)
            return self.conn.get_column_names(), rows

        if kind in ('update', 'insert'):
            return self._run_modification(info, sql)

        raise ValueError(f"Unknown exercise kind '{kind}' for {info['key']}")

    def _check(self, info: dict, columns: List[str], rows: List[Tuple]) -> Tuple[str, str]:
        key = info['key']

        if self.record:
            path = save_expected(key, columns, rows, self.expected_dir)
            return 'recorded', str(path)

        expected = load_expected(key, self.expected_dir)
        if expected is None:
            return 'unrecorded', 'No recorded expectation'

        if list(columns) != list(expected['columns']):
            return 'mismatch', f"Columns differ: expected {expected['columns']}, got {list(columns)}"

        keep = info['compare_columns']
        actual_rows = project_columns(columns, rows, keep)
        expected_rows = project_columns(expected['columns'], expected['rows'], keep)

        if compare_results(actual_rows, expected_rows, self.tolerance, info['ordered']):
            return 'match', ''
        return 'mismatch', f"Expected {len(expected_rows)} rows, got {len(actual_rows)}"

    def run_exercise(self, query_key: str) -> dict:
        """
        Run a single exercise.

        Args:
            query_key: Exercise identifier

        Returns:
            Dictionary with status, timing, columns and rows
        """
        info = get_query_info(query_key)
        sql = get_query(query_key)

        result = {
            'key': query_key,
            'name': info['name'],
            'chapter': info['chapter_title'],
            'kind': info['kind'],
            'status': None,
            'rows_returned': 0,
            'time_sec': 0.0,
            'columns': [],
            'rows': [],
            'message': ''
        }

        start = time.time()
        try:
            self.ensure_views(info['requires'])
            columns, rows = self._execute(info, sql)
        except mariadb.Error as e:
            result['time_sec'] = time.time() - start
            result['message'] = str(e)
            if info['expect_error'] and error_matches(e, info['expect_error']):
                result['status'] = 'expected-error'
            else:
                logger.error("Exercise %s failed: %s", query_key, e)
                result['status'] = 'error'
            return result

        result['time_sec'] = time.time() - start
        result['columns'] = list(columns)
        result['rows'] = list(rows)
        result['rows_returned'] = len(rows)

        if info['expect_error']:
            result['status'] = 'unexpected-success'
            result['message'] = f"Expected error {info['expect_error']['errno']} was not raised"
            return result

        result['status'], result['message'] = self._check(info, columns, rows)
        return result

    def run_all(self) -> None:
        """
        Execute every selected exercise.
        """
        print("Running exercises...")
        print("=" * 70)
        print()

        for idx, query_key in enumerate(self.keys, 1):
            result = self.run_exercise(query_key)
            self.results.append(result)

            print(f"[{idx}/{len(self.keys)}] {result['name']}")
            print(f"  {result['status']:<18} {result['rows_returned']:>6} rows  "
                  f"{format_time(result['time_sec'])}")
            if result['message'] and result['status'] in FAILED_STATUSES:
                print(f"  {result['message']}")

    @property
    def failures(self) -> List[dict]:
        return [r for r in self.results if r['status'] in FAILED_STATUSES]

    def print_summary(self) -> None:
        """
        Print run summary table.
        """
        print()
        print("=" * 70)
        print("Run Summary")
        print("=" * 70)
        print()

        table_data = []
        for r in self.results:
            table_data.append([
                r['key'][:30],
                r['kind'],
                r['status'],
                r['rows_returned'],
                format_time(r['time_sec'])
            ])

        headers = ['Exercise', 'Kind', 'Status', 'Rows', 'Time']
        print(tabulate(table_data, headers=headers, tablefmt='grid'))
        print()

        counts = {}
        for r in self.results:
            counts[r['status']] = counts.get(r['status'], 0) + 1

        print("Statistics:")
        for status, count in sorted(counts.items()):
            print(f"  {status}: {count}/{len(self.results)}")
        print()

    def save_results(self) -> Path:
        """
        Save run results to CSV.

        Returns:
            Path to saved CSV file
        """
        RESULTS_DIR.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime(TIMESTAMP_FORMAT)
        filename = RESULTS_DIR / f"run_{timestamp}.csv"

        df = pd.DataFrame(
            [{k: v for k, v in r.items() if k not in ('columns', 'rows')} for r in self.results]
        )
        df.to_csv(filename, index=False)

        print(f"Results saved to: {filename}")
        print()

        return filename

    def cleanup(self) -> None:
        """
        Close the database connection if the runner opened it.
        """
        if self.conn and self._owns_conn:
            self.conn.close()
            self.conn = None

    def run(self, save: bool = False) -> int:
        """
        Execute the full run.

        Args:
            save: Also write the results CSV

        Returns:
            Process exit code: 0 if no exercise failed, 1 otherwise
        """
        try:
            self.setup()
            self.run_all()
            self.print_summary()
            if save:
                self.save_results()

        except KeyboardInterrupt:
            print("\n\nRun interrupted by user")
            return 1

        except (mariadb.Error, RuntimeError) as e:
            print(f"\nRun failed: {e}")
            logger.exception("Run failed")
            return 1

        finally:
            self.cleanup()

        if self.failures:
            print(f"{len(self.failures)} exercise(s) failed")
            return 1

        print("=" * 70)
        print("Run complete!")
        print("=" * 70)
        return 0
