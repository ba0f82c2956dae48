"""
Sakila Notes Streamlit Explorer

Interactive page for reading the window function and view notes, running
an exercise against the Sakila database and comparing the result with its
recorded expectation.
"""

import streamlit as st
import pandas as pd
import plotly.express as px

from sakila_notes.config import DASHBOARD_CONFIG
from sakila_notes.db_connector import DatabaseConnection
from sakila_notes.exercises import (
    EXERCISES, get_query, get_query_info, list_queries_by_chapter, list_queries_by_section
)
from sakila_notes.results_store import load_expected
from sakila_notes.runner import ExerciseRunner
from sakila_notes.utils import format_time


# Page configuration
st.set_page_config(
    page_title=DASHBOARD_CONFIG['page_title'],
    page_icon=DASHBOARD_CONFIG['page_icon'],
    layout=DASHBOARD_CONFIG['layout']
)


# Initialize session state
if 'result' not in st.session_state:
    st.session_state['result'] = None

STATUS_STYLES = {
    'match': st.success,
    'expected-error': st.success,
    'recorded': st.info,
    'unrecorded': st.info,
    'mismatch': st.error,
    'unexpected-success': st.error,
    'error': st.error,
}


def execute_exercise(query_key: str) -> dict:
    """
    Run one exercise through the runner on a fresh connection.

    Args:
        query_key: Exercise identifier

    Returns:
        Runner result dictionary
    """
    with DatabaseConnection() as conn:
        runner = ExerciseRunner([query_key], conn=conn)
        return runner.run_exercise(query_key)


def display_notes(query_key: str) -> None:
    """
    Display the notes and SQL of an exercise.
    """
    info = get_query_info(query_key)
    st.subheader(info['name'])
    st.caption(f"{info['chapter_title']} / {info['section']} ({info['kind']})")

    for line in info['notes']:
        st.markdown(f"- {line}")

    st.code(get_query(query_key), language='sql')

    if info['verify_sql']:
        st.caption("Checked with:")
        st.code(info['verify_sql'].strip(), language='sql')

    if info['expect_error']:
        st.warning(f"The server is expected to reject this statement "
                   f"(error {info['expect_error']['errno']}).")


def display_result(result: dict) -> None:
    """
    Display the status and result set of a run.
    """
    show = STATUS_STYLES.get(result['status'], st.info)
    message = f"**{result['status']}** in {format_time(result['time_sec'])}"
    if result['message']:
        message += f": {result['message']}"
    show(message)

    if result['columns']:
        df = pd.DataFrame(result['rows'], columns=result['columns'])
        st.dataframe(df, use_container_width=True,
                     height=DASHBOARD_CONFIG['default_table_height'])


def display_chart(result: dict) -> None:
    """
    Plot the numeric columns of a result against its first column.
    """
    if not result['columns'] or not result['rows']:
        st.info("No data to visualize")
        return

    df = pd.DataFrame(result['rows'], columns=result['columns'])
    x_column = df.columns[0]
    numeric = []
    for column in df.columns[1:]:
        converted = pd.to_numeric(df[column], errors='coerce')
        if converted.notna().all():
            df[column] = converted
            numeric.append(column)

    if not numeric:
        st.info("Result has no numeric columns to plot")
        return

    info = get_query_info(result['key'])
    if info['ordered']:
        fig = px.line(df, x=x_column, y=numeric, markers=True, title=info['name'])
    else:
        fig = px.bar(df, x=x_column, y=numeric[0], title=info['name'])
    fig.update_layout(height=DASHBOARD_CONFIG['default_chart_height'])
    st.plotly_chart(fig, use_container_width=True)


def display_expected(query_key: str) -> None:
    """
    Display the recorded expectation of an exercise.
    """
    expected = load_expected(query_key)
    if expected is None:
        st.info("No expectation recorded yet. Run `sakila-notes run --record`.")
        return
    st.caption(f"Recorded {expected['recorded_at']} ({expected['row_count']} rows)")
    df = pd.DataFrame(expected['rows'], columns=expected['columns'])
    st.dataframe(df, use_container_width=True,
                 height=DASHBOARD_CONFIG['default_table_height'])


# Main App Layout
def main():
    """
    Main application layout and logic.
    """
    st.title("Sakila Notes")
    st.markdown("**Analytic window functions and views on the Sakila rental store**")
    st.divider()

    with st.sidebar:
        st.header("Notes")

        chapters = list_queries_by_chapter()
        selected_chapter = st.selectbox("Chapter", list(chapters.keys()))

        sections = list_queries_by_section(EXERCISES[chapters[selected_chapter][0]]['chapter'])
        selected_section = st.selectbox("Section", ["All Sections"] + list(sections.keys()))

        if selected_section == "All Sections":
            keys = chapters[selected_chapter]
        else:
            keys = sections[selected_section]
        options = {EXERCISES[key]['name']: key for key in keys}

        selected_name = st.selectbox("Exercise", list(options.keys()))
        selected_key = options[selected_name]

        run_button = st.button("Run Exercise", type="primary", use_container_width=True)

    display_notes(selected_key)
    st.divider()

    tab1, tab2, tab3 = st.tabs(["Result", "Chart", "Expected"])

    with tab1:
        if run_button:
            with st.spinner("Running exercise..."):
                try:
                    st.session_state['result'] = execute_exercise(selected_key)
                except Exception as e:
                    st.error(f"Error running exercise: {e}")
                    st.session_state['result'] = None

        result = st.session_state['result']
        if result and result['key'] == selected_key:
            display_result(result)
        else:
            st.info("Click 'Run Exercise' to run it against the database")

    with tab2:
        result = st.session_state['result']
        if result and result['key'] == selected_key:
            display_chart(result)
        else:
            st.info("Run the exercise to see a chart")

    with tab3:
        display_expected(selected_key)

    st.divider()
    st.caption("Built with Streamlit | Sakila sample database")


if __name__ == "__main__":
    main()
