from decimal import Decimal

import pandas as pd
import pytest

from conftest import FakeConnection, FakeDbError
from sakila_notes import runner as runner_module
from sakila_notes.results_store import save_expected
from sakila_notes.runner import ExerciseRunner, error_matches, project_columns
from sakila_notes.views import create_view_sql

WEEK_COLUMNS = ['payment_week', 'week_total', 'rolling_sum']
WEEK_ROWS = [
    (200520, Decimal('4824.43'), Decimal('4824.43')),
    (200521, Decimal('4567.11'), Decimal('9391.54')),
]


def rolling_sum_conn(rows=WEEK_ROWS, columns=WEEK_COLUMNS, **kwargs):
    return FakeConnection(responses=[('AS rolling_sum', columns, rows)], **kwargs)


def test_unknown_key_rejected():
    with pytest.raises(KeyError):
        ExerciseRunner(['no_such_query'], conn=FakeConnection())


def test_record_then_match(expected_dir):
    recorder = ExerciseRunner(['rolling_sum'], record=True, expected_dir=expected_dir,
                              conn=rolling_sum_conn())
    recorded = recorder.run_exercise('rolling_sum')
    assert recorded['status'] == 'recorded'
    assert (expected_dir / 'rolling_sum.json').exists()

    checker = ExerciseRunner(['rolling_sum'], expected_dir=expected_dir, conn=rolling_sum_conn())
    result = checker.run_exercise('rolling_sum')
    assert result['status'] == 'match'
    assert result['rows_returned'] == 2
    assert result['columns'] == WEEK_COLUMNS


def test_unrecorded(expected_dir):
    runner = ExerciseRunner(['rolling_sum'], expected_dir=expected_dir, conn=rolling_sum_conn())
    assert runner.run_exercise('rolling_sum')['status'] == 'unrecorded'


def test_row_mismatch(expected_dir):
    save_expected('rolling_sum', WEEK_COLUMNS, WEEK_ROWS[:1], expected_dir)
    runner = ExerciseRunner(['rolling_sum'], expected_dir=expected_dir, conn=rolling_sum_conn())
    result = runner.run_exercise('rolling_sum')
    assert result['status'] == 'mismatch'
    assert 'Expected 1 rows, got 2' in result['message']


def test_ordered_exercise_checks_row_order(expected_dir):
    save_expected('rolling_sum', WEEK_COLUMNS, list(reversed(WEEK_ROWS)), expected_dir)
    runner = ExerciseRunner(['rolling_sum'], expected_dir=expected_dir, conn=rolling_sum_conn())
    assert runner.run_exercise('rolling_sum')['status'] == 'mismatch'


def test_column_mismatch(expected_dir):
    save_expected('rolling_sum', ['payment_week', 'week_tot', 'rolling_sum'], WEEK_ROWS, expected_dir)
    runner = ExerciseRunner(['rolling_sum'], expected_dir=expected_dir, conn=rolling_sum_conn())
    result = runner.run_exercise('rolling_sum')
    assert result['status'] == 'mismatch'
    assert result['message'].startswith('Columns differ')


def test_compare_columns_ignore_arbitrary_row_numbers(expected_dir):
    columns = ['customer_id', 'num_rentals', 'row_num_rnk', 'rnk', 'dense_rnk']
    save_expected('ranking_functions_compared', columns,
                  [(148, 46, 1, 1, 1), (526, 45, 2, 2, 2), (236, 42, 3, 3, 3), (144, 42, 4, 3, 3)],
                  expected_dir)
    conn = FakeConnection(responses=[('dense_rnk', columns, [
        (148, 46, 1, 1, 1), (526, 45, 2, 2, 2), (144, 42, 3, 3, 3), (236, 42, 4, 3, 3),
    ])])
    runner = ExerciseRunner(['ranking_functions_compared'], expected_dir=expected_dir, conn=conn)
    assert runner.run_exercise('ranking_functions_compared')['status'] == 'match'


def test_update_is_verified_and_rolled_back(expected_dir):
    conn = FakeConnection(responses=[
        ('SELECT customer_id, first_name, last_name\nFROM customer',
         ['customer_id', 'first_name', 'last_name'], [(1, 'MARY', 'SMITH-ALLEN')]),
    ])
    runner = ExerciseRunner(['update_view_column'], expected_dir=expected_dir, conn=conn)
    result = runner.run_exercise('update_view_column')

    assert result['status'] == 'unrecorded'
    assert result['rows'] == [(1, 'MARY', 'SMITH-ALLEN')]
    assert conn.rollbacks == 1
    # only the view installation is committed
    assert conn.commits == 1
    assert any(sql.strip().startswith('UPDATE customer_vw') for sql in conn.statements('write'))


def test_expected_error_by_errno(expected_dir):
    conn = FakeConnection(errors={
        'SET email': FakeDbError("Column 'email' is not updatable", errno=1348),
    })
    runner = ExerciseRunner(['update_derived_column'], expected_dir=expected_dir, conn=conn)
    result = runner.run_exercise('update_derived_column')

    assert result['status'] == 'expected-error'
    assert 'not updatable' in result['message']
    assert conn.rollbacks >= 1


def test_expected_error_by_message_without_errno(expected_dir):
    conn = FakeConnection(errors={
        'INSERT INTO customer_vw': FakeDbError(
            "The target table customer_vw of the INSERT is not insertable-into"),
    })
    runner = ExerciseRunner(['insert_into_derived_view'], expected_dir=expected_dir, conn=conn)
    assert runner.run_exercise('insert_into_derived_view')['status'] == 'expected-error'


def test_wrong_error_is_an_error(expected_dir):
    conn = FakeConnection(errors={
        'SET last_name': FakeDbError("You have an error in your SQL syntax", errno=1064),
    })
    runner = ExerciseRunner(['update_join_view_multi_table'], expected_dir=expected_dir, conn=conn)
    assert runner.run_exercise('update_join_view_multi_table')['status'] == 'error'


def test_missing_rejection_is_unexpected_success(expected_dir):
    runner = ExerciseRunner(['update_derived_column'], expected_dir=expected_dir,
                            conn=FakeConnection())
    result = runner.run_exercise('update_derived_column')
    assert result['status'] == 'unexpected-success'
    assert '1348' in result['message']


def test_query_error(expected_dir):
    conn = rolling_sum_conn(errors={'AS rolling_sum': FakeDbError('boom', errno=1064)})
    runner = ExerciseRunner(['rolling_sum'], expected_dir=expected_dir, conn=conn)
    result = runner.run_exercise('rolling_sum')
    assert result['status'] == 'error'
    assert result['message'] == 'boom'


def test_view_exercise_selects_from_view(expected_dir):
    conn = FakeConnection(responses=[
        ('SELECT * FROM customer_vw', ['customer_id', 'first_name', 'last_name', 'email'],
         [(1, 'MARY', 'SMITH', 'MA#####.org')]),
    ])
    runner = ExerciseRunner(['customer_vw'], expected_dir=expected_dir, conn=conn)
    result = runner.run_exercise('customer_vw')

    assert result['rows_returned'] == 1
    assert create_view_sql('customer_vw') in conn.statements('write')
    assert 'customer_vw' in runner.installed_views


def test_required_views_installed_once(expected_dir):
    conn = FakeConnection()
    runner = ExerciseRunner(['describe_customer_vw', 'query_through_view'],
                            expected_dir=expected_dir, conn=conn)
    runner.run_exercise('describe_customer_vw')
    runner.run_exercise('query_through_view')

    creates = [sql for sql in conn.statements('write') if 'CREATE OR REPLACE VIEW' in sql]
    assert creates == [create_view_sql('customer_vw')]


def test_run_exit_codes(expected_dir, capsys):
    save_expected('rolling_sum', WEEK_COLUMNS, WEEK_ROWS, expected_dir)
    conn = rolling_sum_conn()
    assert ExerciseRunner(['rolling_sum'], expected_dir=expected_dir, conn=conn).run() == 0
    assert not conn.closed
    assert 'Run complete!' in capsys.readouterr().out

    failing = rolling_sum_conn(rows=WEEK_ROWS[:1])
    assert ExerciseRunner(['rolling_sum'], expected_dir=expected_dir, conn=failing).run() == 1


def test_run_reports_missing_tables(expected_dir, capsys):
    conn = FakeConnection(present_tables=set())
    runner = ExerciseRunner(['query_through_view'], expected_dir=expected_dir, conn=conn)
    assert runner.run() == 1
    assert 'missing tables' in capsys.readouterr().out


def test_save_results(expected_dir, tmp_path, monkeypatch):
    monkeypatch.setattr(runner_module, 'RESULTS_DIR', tmp_path / 'runs')
    runner = ExerciseRunner(['rolling_sum'], expected_dir=expected_dir, conn=rolling_sum_conn())
    runner.results.append(runner.run_exercise('rolling_sum'))

    path = runner.save_results()
    df = pd.read_csv(path)
    assert list(df['key']) == ['rolling_sum']
    assert list(df['status']) == ['unrecorded']
    assert 'rows' not in df.columns


def test_error_matches():
    assert error_matches(FakeDbError('x', errno=1393), {'errno': 1393, 'match': 'zzz'})
    assert not error_matches(FakeDbError('x', errno=1064), {'errno': 1393, 'match': 'x'})
    assert error_matches(FakeDbError('Can not modify MORE THAN ONE BASE TABLE'),
                         {'errno': 1393, 'match': 'more than one base table'})


def test_project_columns():
    rows = [(1, 'a', 2.0)]
    assert project_columns(['x', 'y', 'z'], rows, ['z', 'x']) == [[2.0, 1]]
    assert project_columns(['x', 'y', 'z'], rows, None) == [[1, 'a', 2.0]]
    with pytest.raises(KeyError):
        project_columns(['x'], rows, ['w'])
