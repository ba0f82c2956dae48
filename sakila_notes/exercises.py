"""
Annotated Statement Catalog

This module holds the study notes: every statement from the analytic
functions and views chapters, together with the commentary that explains
the SQL semantics it demonstrates. All computation is done by the database
server; the catalog only stores text and the metadata the runner needs.

Exercise kinds:
- query: a SELECT whose result set is the whole output
- describe: a DESC statement showing a table or view's columns
- view: a CREATE OR REPLACE VIEW, checked by selecting from the view
- update / insert: data modification through a view, always rolled back
"""

from pathlib import Path
from typing import Dict, List, Optional, Union

from sakila_notes.config import CHAPTERS, NOTES_DIR
from sakila_notes.views import create_view_sql

NOTES_WIDTH = 120

# Error numbers the server raises for non-updatable views
ER_VIEW_MULTIUPDATE = 1393
ER_NONUPDATEABLE_COLUMN = 1348
ER_NON_INSERTABLE_TABLE = 1471

CHAPTER_NOTES = {
    14: [
        "views are simply mechanisms for querying data",
        "views don't involve data storage and won't fill up disk space",
        "users can query a view just as they would query a table directly",
        "a view exposes a public interface while keeping private details intact",
        "end users can be allowed to access data only through a set of views",
    ],
    16: [
        "data analysis has traditionally been done outside the database server in tools like Excel, Python, R",
        "the sql language includes a robust set of functions for analytic processing",
        "ex. generating rankings, calculating percentage differences between one time period and another",
    ],
}

SECTION_NOTES = {
    "Window Functions": [
        "windows partition the data for use by the analytic function without changing the overall result set",
        "windows are defined with the OVER clause and have an optional PARTITION BY and ORDER BY clause",
        "an empty OVER clause tells sql the window should include the entire result set",
    ],
    "Localized Sorting": [
        "window functions can specify a sort order",
        "used for ranking a set of values, creates a new column with the rank",
        "PARTITION BY and ORDER BY specify the level the ranking is generated at",
    ],
    "Ranking Functions": [
        "ROW_NUMBER() - when two values are the same, the function arbitrarily assigns them different ranks",
        "RANK() - equal values share a rank, and the next value skips ahead by the number of ties",
        "DENSE_RANK() - equal values share a rank, and the next value gets the following rank with no gap",
    ],
    "Generating Multiple Rankings": [
        "PARTITION BY splits the rankings into multiple lists depending on the values in a column",
    ],
    "Reporting Functions": [
        "finding outliers (MIN, MAX) or generating SUMs or AVGs over a window",
    ],
    "Window Frames": [
        "a frame subclause gives finer control over exactly which rows are in the data window",
        "ROWS UNBOUNDED PRECEDING: the window runs from the beginning of the result set up to and including the current row",
    ],
    "Lag and Lead": [
        "a common task is comparing values from one row to another",
        "LAG and LEAD retrieve a column value from the previous and next row of the result set",
        "the offset says how many rows to go back or forward and defaults to 1",
    ],
    "Column Value Concatenation": [
        "GROUP_CONCAT pivots a set of column values into a single delimited string",
    ],
    "Why Use Views": [
        "data security: a table may contain sensitive information like identification numbers or card details",
        "grant select on the table to only some users, and let everyone else query a view that omits or obscures it",
    ],
    "Updatable Views": [
        "data can be modified through a view as long as certain restrictions are followed",
        "for mysql a view is updatable when:",
        "    no aggregate functions are used",
        "    there is no GROUP BY or HAVING",
        "    no subqueries exist in the SELECT or FROM clause",
        "    there are no UNIONs or DISTINCT",
        "    the FROM clause includes at least one table or updatable view",
        "    the FROM clause uses only inner joins if there is more than one table or view",
    ],
}

# Query dictionary with notes and SQL, in reading order
EXERCISES = {
    # ------------------------------------------------------------------
    # Ch. 14: Views
    # ------------------------------------------------------------------
    "customer_vw": {
        "name": "Masking email addresses",
        "chapter": 14,
        "section": "Views",
        "notes": [
            "a view that masks the email address of customers",
            "users query it just like they would a table",
        ],
        "kind": "view",
        "view": "customer_vw",
        "sql": create_view_sql("customer_vw"),
        "ordered": False,
    },

    "describe_customer": {
        "name": "Describe the customer table",
        "chapter": 14,
        "section": "Views",
        "notes": [
            "some columns in a view are attached to functions or subqueries, unlike tables",
            "from a user standpoint the view looks exactly like a table",
        ],
        "kind": "describe",
        "sql": "DESC customer",
        "ordered": True,
    },

    "describe_customer_vw": {
        "name": "Describe the customer view",
        "chapter": 14,
        "section": "Views",
        "notes": [],
        "kind": "describe",
        "sql": "DESC customer_vw",
        "requires": ["customer_vw"],
        "ordered": True,
    },

    "query_through_view": {
        "name": "Querying through a view",
        "chapter": 14,
        "section": "Views",
        "notes": [
            "any clause of the select statement can be used when querying through a view",
        ],
        "kind": "query",
        "sql": """
SELECT
    first_name,
    COUNT(*),
    MIN(last_name),
    MAX(last_name)
FROM customer_vw
WHERE first_name LIKE 'J%'
GROUP BY 1
HAVING COUNT(*) > 1""",
        "requires": ["customer_vw"],
        "ordered": False,
    },

    "join_view_to_table": {
        "name": "Joining a view to a table",
        "chapter": 14,
        "section": "Views",
        "notes": [
            "views can be joined to other tables",
        ],
        "kind": "query",
        "sql": """
SELECT
    cv.first_name, cv.last_name, p.amount
FROM customer_vw AS cv
INNER JOIN payment p
ON cv.customer_id = p.customer_id
WHERE p.amount >= 11""",
        "requires": ["customer_vw"],
        "ordered": False,
    },

    "customer_vw_active": {
        "name": "Restricting rows in a view",
        "chapter": 14,
        "section": "Why Use Views",
        "notes": [
            "a view can also constrain which rows a user can access with a WHERE clause",
            "the active column is used for filtering but left out of the view",
        ],
        "kind": "view",
        "view": "customer_vw_active",
        "sql": create_view_sql("customer_vw_active"),
        "ordered": False,
    },

    "sales_by_film_category": {
        "name": "Data aggregation",
        "chapter": 14,
        "section": "Why Use Views",
        "notes": [
            "views make it appear as if data is preaggregated and stored in the database",
            "rather than letting developers write queries against the base tables, provide them with a view",
        ],
        "kind": "view",
        "view": "sales_by_film_category",
        "sql": create_view_sql("sales_by_film_category"),
        "ordered": False,
    },

    "film_stats": {
        "name": "Hiding complexity",
        "chapter": 14,
        "section": "Why Use Views",
        "notes": [
            "views shield end users from the complexity of a query",
            "summary information about each film comes from five other tables through scalar subqueries",
            "category has no key linked to film, so the category name goes through film_category",
            "the view can supply descriptive film info without unnecessary joins to the other tables",
        ],
        "kind": "view",
        "view": "film_stats",
        "sql": create_view_sql("film_stats"),
        "ordered": False,
    },

    "payment_all": {
        "name": "Joining partitioned data",
        "chapter": 14,
        "section": "Why Use Views",
        "notes": [
            "some designs break large tables into pieces to improve performance",
            "ex. payment split into payment_current and payment_historic",
            "a view can combine both pieces for users who need current and historic records",
            "the column list before AS names every column the view exposes",
        ],
        "kind": "view",
        "view": "payment_all",
        "sql": create_view_sql("payment_all"),
        "verify_sql": """
SELECT
    COUNT(*) AS num_payments,
    SUM(amount) AS total_amount,
    MIN(payment_date) AS first_payment,
    MAX(payment_date) AS last_payment
FROM payment_all""",
        "ordered": True,
    },

    "update_view_column": {
        "name": "Updating a simple view",
        "chapter": 14,
        "section": "Updatable Views",
        "notes": [
            "columns that are not derived from an expression can be modified through the view",
            "the change is made to the customer table the view is derived from",
        ],
        "kind": "update",
        "sql": """
UPDATE customer_vw
SET last_name = 'SMITH-ALLEN'
WHERE customer_id = 1""",
        "verify_sql": """
SELECT customer_id, first_name, last_name
FROM customer
WHERE customer_id = 1""",
        "requires": ["customer_vw"],
        "ordered": True,
    },

    "update_derived_column": {
        "name": "Updating a derived column",
        "chapter": 14,
        "section": "Updatable Views",
        "notes": [
            "modifying a column derived from an expression is rejected",
        ],
        "kind": "update",
        "sql": """
UPDATE customer_vw
SET email = 'MAY.SMITH-ALLEN@sakilacustomer.org'
WHERE customer_id = 1""",
        "requires": ["customer_vw"],
        "expect_error": {"errno": ER_NONUPDATEABLE_COLUMN, "match": "not updatable"},
        "ordered": False,
    },

    "insert_into_derived_view": {
        "name": "Inserting into a view with derived columns",
        "chapter": 14,
        "section": "Updatable Views",
        "notes": [
            "a view with derived columns does not accept inserts",
            "even when only the non derived columns are supplied",
        ],
        "kind": "insert",
        "sql": """
INSERT INTO customer_vw
    (customer_id, first_name, last_name)
VALUES
    (99999, 'ROBERT', 'SIMPSON')""",
        "requires": ["customer_vw"],
        "expect_error": {"errno": ER_NON_INSERTABLE_TABLE, "match": "not insertable-into"},
        "ordered": False,
    },

    "customer_details": {
        "name": "A join view",
        "chapter": 14,
        "section": "Updatable Views",
        "notes": [
            "a view of four joined tables gives a lot of information without the user writing the joins",
        ],
        "kind": "view",
        "view": "customer_details",
        "sql": create_view_sql("customer_details"),
        "ordered": True,
    },

    "update_join_view_single_table": {
        "name": "Updating one base table through a join view",
        "chapter": 14,
        "section": "Updatable Views",
        "notes": [
            "a join view can update columns as long as they all come from one base table",
        ],
        "kind": "update",
        "sql": """
UPDATE customer_details
SET last_name = 'SMITH-ALLEN', active = 0
WHERE customer_id = 1""",
        "verify_sql": """
SELECT customer_id, last_name, active
FROM customer
WHERE customer_id = 1""",
        "requires": ["customer_details"],
        "ordered": True,
    },

    "update_join_view_other_table": {
        "name": "Updating another base table through a join view",
        "chapter": 14,
        "section": "Updatable Views",
        "notes": [],
        "kind": "update",
        "sql": """
UPDATE customer_details
SET address = '999 Mockingbird Lane'
WHERE customer_id = 1""",
        "verify_sql": """
SELECT customer_id, address
FROM customer_details
WHERE customer_id = 1""",
        "requires": ["customer_details"],
        "ordered": True,
    },

    "update_join_view_multi_table": {
        "name": "Updating several base tables at once",
        "chapter": 14,
        "section": "Updatable Views",
        "notes": [
            "updating columns from more than one base table in a single statement is rejected",
            "the same rules apply to inserts: all new values must go to the same base table",
        ],
        "kind": "update",
        "sql": """
UPDATE customer_details
SET last_name = 'SMITH-ALLEN',
    active = 0,
    address = '999 Mockingbird Lane'
WHERE customer_id = 1""",
        "requires": ["customer_details"],
        "expect_error": {"errno": ER_VIEW_MULTIUPDATE, "match": "more than one base table"},
        "ordered": False,
    },

    "film_ctgry_actor": {
        "name": "Exercise 1: film, category and actor view",
        "chapter": 14,
        "section": "Exercise 1",
        "notes": [
            "create a view definition that the following query can use to list films with Fawcett actors",
        ],
        "kind": "view",
        "view": "film_ctgry_actor",
        "sql": create_view_sql("film_ctgry_actor"),
        "verify_sql": """
SELECT COUNT(*) AS num_rows, COUNT(DISTINCT title) AS num_titles
FROM film_ctgry_actor""",
        "ordered": True,
    },

    "fawcett_films": {
        "name": "Exercise 1: films with Fawcett actors",
        "chapter": 14,
        "section": "Exercise 1",
        "notes": [],
        "kind": "query",
        "sql": """
SELECT title, category_name, first_name, last_name
FROM film_ctgry_actor
WHERE last_name = 'FAWCETT'
ORDER BY first_name, title""",
        "requires": ["film_ctgry_actor"],
        "ordered": True,
    },

    "country_totals_derived_table": {
        "name": "Exercise 2: country totals through a derived table",
        "chapter": 14,
        "section": "Exercise 2",
        "notes": [
            "a report with the name of every country and the total payments of customers living there",
            "starting from payment and joining down keeps every payment record in the sum",
            "but countries without customers drop out of the result",
        ],
        "kind": "query",
        "sql": """
SELECT
    country,
    SUM(amount) AS tot_payments
FROM
(SELECT
    p.payment_id,
    p.customer_id,
    p.amount,
    cn.country
FROM payment p
INNER JOIN customer c
    ON p.customer_id = c.customer_id
INNER JOIN address a
    ON a.address_id = c.address_id
INNER JOIN city ct
    ON ct.city_id = a.city_id
INNER JOIN country cn
    ON cn.country_id = ct.country_id) a
GROUP BY 1
ORDER BY 2 DESC""",
        "ordered": False,
    },

    "country_totals_scalar_subquery": {
        "name": "Exercise 2: country totals through a scalar subquery",
        "chapter": 14,
        "section": "Exercise 2",
        "notes": [
            "a scalar subquery in the select clause needs one join less",
            "the correlation from country to city moves into the subquery's WHERE clause",
            "every country is listed, with NULL totals where no customer lives",
        ],
        "kind": "query",
        "sql": """
SELECT
    cn.country,
    (SELECT SUM(p.amount)
     FROM city ct
     INNER JOIN address a
        ON a.city_id = ct.city_id
     INNER JOIN customer c
        ON a.address_id = c.address_id
     INNER JOIN payment p
        ON p.customer_id = c.customer_id
     WHERE cn.country_id = ct.country_id) tot_payments
FROM country cn
ORDER BY 2 DESC""",
        "ordered": False,
    },

    "country_payments": {
        "name": "Exercise 2: the country totals view",
        "chapter": 14,
        "section": "Exercise 2",
        "notes": [
            "the view definition asked for: country plus a scalar subquery column named tot_payments",
        ],
        "kind": "view",
        "view": "country_payments",
        "sql": create_view_sql("country_payments"),
        "ordered": False,
    },

    # ------------------------------------------------------------------
    # Ch. 16: Analytic Functions
    # ------------------------------------------------------------------
    "monthly_sales": {
        "name": "Sales per month",
        "chapter": 16,
        "section": "Window Functions",
        "notes": [
            "simply the sum of sales per month, grouped on quarter and month",
        ],
        "kind": "query",
        "sql": """
SELECT
    QUARTER(payment_date) AS quarter,
    MONTHNAME(payment_date) AS month_nm,
    SUM(amount) AS monthly_sales
FROM payment
WHERE YEAR(payment_date) = 2005
GROUP BY 1, 2""",
        "ordered": False,
    },

    "max_sales_windows": {
        "name": "Maximum over the whole set and per quarter",
        "chapter": 16,
        "section": "Window Functions",
        "notes": [
            "the empty window takes the largest SUM(amount) over the whole result set",
            "that value stays constant down the whole data set",
            "partitioned by quarter, the maximum stays constant within each quarter",
        ],
        "kind": "query",
        "sql": """
SELECT
    QUARTER(payment_date) AS quarter,
    MONTHNAME(payment_date) AS month_nm,
    SUM(amount) AS monthly_sales,
    MAX(SUM(amount)) OVER () AS max_overall_sales,
    MAX(SUM(amount)) OVER (PARTITION BY QUARTER(payment_date)) AS max_qrt_sales
FROM payment
WHERE YEAR(payment_date) = 2005
GROUP BY 1, 2""",
        "ordered": False,
    },

    "rank_within_quarter": {
        "name": "Ranking months within each quarter",
        "chapter": 16,
        "section": "Localized Sorting",
        "notes": [],
        "kind": "query",
        "sql": """
SELECT
    QUARTER(payment_date) AS quarter,
    MONTHNAME(payment_date) AS month_nm,
    SUM(amount) AS monthly_sales,
    RANK() OVER (PARTITION BY QUARTER(payment_date) ORDER BY SUM(amount)) AS sales_rank
FROM payment
WHERE YEAR(payment_date) = 2005
GROUP BY 1, 2""",
        "ordered": False,
    },

    "rentals_per_customer": {
        "name": "Rentals per customer",
        "chapter": 16,
        "section": "Ranking Functions",
        "notes": [],
        "kind": "query",
        "sql": """
SELECT
    customer_id,
    COUNT(*) AS num_rentals
FROM rental
GROUP BY 1
ORDER BY 2 DESC""",
        "ordered": False,
    },

    "ranking_functions_compared": {
        "name": "ROW_NUMBER, RANK and DENSE_RANK side by side",
        "chapter": 16,
        "section": "Ranking Functions",
        "notes": [
            "the three ranking functions only differ on ties",
        ],
        "kind": "query",
        "sql": """
SELECT
    customer_id,
    COUNT(*) AS num_rentals,
    ROW_NUMBER() OVER (ORDER BY COUNT(*) DESC) AS row_num_rnk,
    RANK() OVER (ORDER BY COUNT(*) DESC) AS rnk,
    DENSE_RANK() OVER (ORDER BY COUNT(*) DESC) AS dense_rnk
FROM rental
GROUP BY 1
ORDER BY 2 DESC""",
        # ROW_NUMBER among ties is arbitrary, so only compare the columns the engine fixes
        "compare_columns": ["customer_id", "num_rentals", "rnk", "dense_rnk"],
        "ordered": False,
    },

    "rank_per_month": {
        "name": "Customer rankings per month",
        "chapter": 16,
        "section": "Generating Multiple Rankings",
        "notes": [],
        "kind": "query",
        "sql": """
SELECT
    customer_id,
    MONTHNAME(rental_date) AS month,
    COUNT(*) AS num_rentals,
    RANK() OVER (PARTITION BY MONTHNAME(rental_date) ORDER BY COUNT(*) DESC) AS rank_rnk
FROM rental
GROUP BY 1, 2
ORDER BY 2, 3 DESC""",
        "ordered": False,
    },

    "top_five_per_month": {
        "name": "Top 5 customers per month",
        "chapter": 16,
        "section": "Generating Multiple Rankings",
        "notes": [
            "a window function cannot appear in WHERE, so wrap the ranking in a subquery",
            "then keep just the top 5 customers per month",
        ],
        "kind": "query",
        "sql": """
SELECT *
FROM
    (SELECT
        customer_id,
        MONTHNAME(rental_date) AS month,
        COUNT(*) AS num_rentals,
        RANK() OVER (PARTITION BY MONTHNAME(rental_date) ORDER BY COUNT(*) DESC) AS rank_rnk
    FROM rental
    GROUP BY 1, 2) a
WHERE rank_rnk <= 5
ORDER BY 2, 3 DESC, 4""",
        "ordered": False,
    },

    "monthly_and_grand_totals": {
        "name": "Monthly and grand totals next to each payment",
        "chapter": 16,
        "section": "Reporting Functions",
        "notes": [],
        "kind": "query",
        "sql": """
SELECT
    MONTHNAME(payment_date) AS month_nm,
    amount,
    SUM(amount) OVER (PARTITION BY MONTHNAME(payment_date)) AS monthly_total,
    SUM(amount) OVER () AS grand_total
FROM payment
WHERE amount >= 10
ORDER BY 1""",
        "ordered": False,
    },

    "pct_of_total": {
        "name": "Each month's share of total sales",
        "chapter": 16,
        "section": "Reporting Functions",
        "notes": [
            "with the total generated by a window function, each record's share is easy to calculate",
        ],
        "kind": "query",
        "sql": """
SELECT
    MONTHNAME(payment_date) AS month_nm,
    SUM(amount) AS month_total,
    ROUND(SUM(amount) / SUM(SUM(amount)) OVER () * 100, 2) AS pct_of_total
FROM payment
GROUP BY 1
ORDER BY 1""",
        "ordered": True,
    },

    "highest_lowest_month": {
        "name": "Labelling the highest and lowest months",
        "chapter": 16,
        "section": "Reporting Functions",
        "notes": [],
        "kind": "query",
        "sql": """
SELECT
    MONTHNAME(payment_date) AS month_nm,
    SUM(amount) AS month_total,
    CASE WHEN SUM(amount) = MAX(SUM(amount)) OVER () THEN 'highest'
         WHEN SUM(amount) = MIN(SUM(amount)) OVER () THEN 'lowest'
         ELSE 'middle' END AS descriptor
FROM payment
GROUP BY 1
ORDER BY 1""",
        "ordered": True,
    },

    "rolling_sum": {
        "name": "Rolling weekly sum",
        "chapter": 16,
        "section": "Window Frames",
        "notes": [],
        "kind": "query",
        "sql": """
SELECT
    YEARWEEK(payment_date) AS payment_week,
    SUM(amount) AS week_total,
    SUM(SUM(amount)) OVER (ORDER BY YEARWEEK(payment_date) ROWS UNBOUNDED PRECEDING) AS rolling_sum
FROM payment
GROUP BY 1
ORDER BY 1""",
        "ordered": True,
    },

    "rolling_three_week_avg": {
        "name": "Rolling three week average",
        "chapter": 16,
        "section": "Window Frames",
        "notes": [
            "the average of the current row, the previous row and the next row",
        ],
        "kind": "query",
        "sql": """
SELECT
    YEARWEEK(payment_date) AS payment_week,
    SUM(amount) AS week_total,
    AVG(SUM(amount)) OVER (ORDER BY YEARWEEK(payment_date)
        ROWS BETWEEN 1 PRECEDING AND 1 FOLLOWING) AS rolling_3_wk_avg
FROM payment
GROUP BY 1
ORDER BY 1""",
        "ordered": True,
    },

    "seven_day_range_avg": {
        "name": "Seven day average over a date range",
        "chapter": 16,
        "section": "Window Frames",
        "notes": [
            "RANGE is the alternative to ROWS when the frame is a date interval rather than a number of rows",
            "this helps when there are gaps in the data",
            "the window holds the current date plus up to 3 days before and 3 days after it",
        ],
        "kind": "query",
        "sql": """
SELECT
    DATE(payment_date),
    SUM(amount),
    AVG(SUM(amount)) OVER (ORDER BY DATE(payment_date)
        RANGE BETWEEN INTERVAL 3 DAY PRECEDING AND INTERVAL 3 DAY FOLLOWING) AS 7_day_average
FROM payment
WHERE payment_date BETWEEN '2005-07-01' AND '2005-09-01'
GROUP BY 1
ORDER BY 1""",
        "ordered": True,
    },

    "prev_next_week": {
        "name": "Previous and next week totals",
        "chapter": 16,
        "section": "Lag and Lead",
        "notes": [],
        "kind": "query",
        "sql": """
SELECT
    YEARWEEK(payment_date) AS payment_week,
    SUM(amount) AS week_tot,
    LAG(SUM(amount), 1) OVER (ORDER BY YEARWEEK(payment_date)) AS prev_week_tot,
    LEAD(SUM(amount), 1) OVER (ORDER BY YEARWEEK(payment_date)) AS next_week_tot
FROM payment
GROUP BY 1
ORDER BY 1""",
        "ordered": True,
    },

    "week_pct_diff": {
        "name": "Percent difference from the previous week",
        "chapter": 16,
        "section": "Lag and Lead",
        "notes": [
            "subtract the previous week's total from this week's total",
            "divide by the previous week's total, multiply by 100 and round to 1 decimal",
        ],
        "kind": "query",
        "sql": """
SELECT
    YEARWEEK(payment_date) AS payment_week,
    SUM(amount) AS week_tot,
    ROUND((SUM(amount) - LAG(SUM(amount), 1) OVER (ORDER BY YEARWEEK(payment_date))) /
        LAG(SUM(amount), 1) OVER (ORDER BY YEARWEEK(payment_date)) * 100, 1) AS pct_diff
FROM payment
GROUP BY 1
ORDER BY 1""",
        "ordered": True,
    },

    "week_pct_diff_steps": {
        "name": "Percent difference step by step",
        "chapter": 16,
        "section": "Lag and Lead",
        "notes": [
            "the same calculation broken into its steps",
        ],
        "kind": "query",
        "sql": """
SELECT
    YEARWEEK(payment_date) AS payment_week,
    SUM(amount) AS week_tot,
    SUM(amount) - LAG(SUM(amount), 1) OVER (ORDER BY YEARWEEK(payment_date)) AS stp_1,
    (SUM(amount) - LAG(SUM(amount), 1) OVER (ORDER BY YEARWEEK(payment_date))) /
        LAG(SUM(amount), 1) OVER (ORDER BY YEARWEEK(payment_date)) AS stp_2,
    (SUM(amount) - LAG(SUM(amount), 1) OVER (ORDER BY YEARWEEK(payment_date))) /
        LAG(SUM(amount), 1) OVER (ORDER BY YEARWEEK(payment_date)) * 100 AS stp_3,
    ROUND((SUM(amount) - LAG(SUM(amount), 1) OVER (ORDER BY YEARWEEK(payment_date))) /
        LAG(SUM(amount), 1) OVER (ORDER BY YEARWEEK(payment_date)) * 100, 1) AS stp_4
FROM payment
GROUP BY 1
ORDER BY 1""",
        "ordered": True,
    },

    "actors_per_film": {
        "name": "Actor last names per film",
        "chapter": 16,
        "section": "Column Value Concatenation",
        "notes": [
            "the actors' last names are grouped by film title in descending order, separated by commas",
            "HAVING keeps only the films with exactly 3 actors",
        ],
        "kind": "query",
        "sql": """
SELECT
    f.title,
    GROUP_CONCAT(a.last_name ORDER BY a.last_name DESC SEPARATOR ', ') AS actors
FROM actor a
INNER JOIN film_actor fa
    ON a.actor_id = fa.actor_id
INNER JOIN film f
    ON f.film_id = fa.film_id
GROUP BY 1
HAVING COUNT(*) = 3""",
        "ordered": False,
    },
}


def _resolve_chapter(chapter: Union[int, str]) -> int:
    if isinstance(chapter, str) and not chapter.isdigit():
        for number, title in CHAPTERS.items():
            if title == chapter:
                return number
        raise KeyError(f"Chapter '{chapter}' not found. Available chapters: {list(CHAPTERS.values())}")
    number = int(chapter)
    if number not in CHAPTERS:
        raise KeyError(f"Chapter {number} not found. Available chapters: {list(CHAPTERS.keys())}")
    return number


def get_query(query_key: str) -> str:
    """
    Get the SQL text of an exercise.

    Args:
        query_key: The key identifying the exercise (e.g., 'rolling_sum')

    Returns:
        SQL statement string without surrounding whitespace

    Raises:
        KeyError: If query_key is not found
    """
    if query_key not in EXERCISES:
        raise KeyError(f"Query '{query_key}' not found. Available queries: {list(EXERCISES.keys())}")

    return EXERCISES[query_key]['sql'].strip()


def get_query_info(query_key: str) -> dict:
    """
    Get metadata about an exercise.

    Args:
        query_key: The key identifying the exercise

    Returns:
        Dictionary with every field except 'sql', with defaults filled in

    Raises:
        KeyError: If query_key is not found
    """
    if query_key not in EXERCISES:
        raise KeyError(f"Query '{query_key}' not found")

    info = {
        'key': query_key,
        'requires': [],
        'verify_sql': None,
        'expect_error': None,
        'compare_columns': None,
        'view': None,
    }
    info.update({k: v for k, v in EXERCISES[query_key].items() if k != 'sql'})
    info['chapter_title'] = CHAPTERS[info['chapter']]
    return info


def list_queries(chapter: Optional[Union[int, str]] = None) -> List[str]:
    """
    Get exercise keys in reading order.

    Args:
        chapter: Optional chapter number or title to filter on

    Returns:
        List of exercise keys
    """
    if chapter is None:
        return list(EXERCISES.keys())
    number = _resolve_chapter(chapter)
    return [key for key, info in EXERCISES.items() if info['chapter'] == number]


def list_queries_by_chapter() -> Dict[str, List[str]]:
    """
    Get exercises organized by chapter title.
    """
    chapters = {}
    for number in sorted(CHAPTERS):
        keys = list_queries(number)
        if keys:
            chapters[CHAPTERS[number]] = keys
    return chapters


def list_queries_by_section(chapter: Optional[Union[int, str]] = None) -> Dict[str, List[str]]:
    """
    Get exercises organized by section, in reading order.
    """
    sections = {}
    for key in list_queries(chapter):
        section = EXERCISES[key]['section']
        sections.setdefault(section, []).append(key)
    return sections


def _banner(title: str = "") -> str:
    if not title:
        return "#" * NOTES_WIDTH
    prefix = f"###### {title} "
    return prefix + "#" * max(NOTES_WIDTH - len(prefix), 6)


def _comment_lines(lines: List[str]) -> List[str]:
    return [f"-- {line}" for line in lines]


def render_notes(chapter: Union[int, str]) -> str:
    """
    Render a chapter as an annotated SQL study-notes file.

    The layout is a chapter banner, then for each section a section banner
    followed by (comments, statement) pairs separated by rule lines.

    Args:
        chapter: Chapter number or title

    Returns:
        Notes text, runnable as a SQL script by a mysql client
    """
    number = _resolve_chapter(chapter)
    lines = [_banner(), f"-- {CHAPTERS[number]}", _banner(), ""]
    lines.extend(_comment_lines(CHAPTER_NOTES.get(number, [])))

    for section, keys in list_queries_by_section(number).items():
        lines.extend(["", _banner(section), ""])
        section_notes = SECTION_NOTES.get(section)
        if section_notes:
            lines.extend(_comment_lines(section_notes))
            lines.extend(["", _banner(), ""])

        for idx, key in enumerate(keys):
            if idx:
                lines.extend(["", _banner(), ""])
            info = EXERCISES[key]
            lines.extend(_comment_lines(info['notes']))
            if info.get('expect_error'):
                lines.append(f"-- expected error {info['expect_error']['errno']}")
            if info['notes'] or info.get('expect_error'):
                lines.append("")
            lines.append(get_query(key) + ";")
            if info.get('verify_sql') and info['kind'] != 'view':
                lines.extend(["", info['verify_sql'].strip() + ";"])

    lines.extend(["", _banner(), ""])
    return "\n".join(lines)


def export_notes(output_dir: Optional[Path] = None) -> List[Path]:
    """
    Write one annotated notes file per chapter.

    Args:
        output_dir: Target directory (default: NOTES_DIR)

    Returns:
        Paths of the written files
    """
    output_dir = Path(output_dir or NOTES_DIR)
    output_dir.mkdir(parents=True, exist_ok=True)

    written = []
    for number, title in CHAPTERS.items():
        slug = title.split(':', 1)[1].strip().lower().replace(' ', '_')
        path = output_dir / f"ch{number}_{slug}.sql"
        path.write_text(render_notes(number), encoding='utf-8')
        written.append(path)
    return written


def print_query_catalog(chapter: Optional[Union[int, str]] = None) -> None:
    """
    Print a formatted catalog of the exercises.
    """
    print("=" * 80)
    print("Sakila Notes Catalog")
    print("=" * 80)

    for title, keys in list_queries_by_chapter().items():
        if chapter is not None and EXERCISES[keys[0]]['chapter'] != _resolve_chapter(chapter):
            continue
        print()
        print(title)
        print("-" * 80)
        for idx, key in enumerate(keys, 1):
            info = EXERCISES[key]
            print(f"{idx:2}. {info['name']} (Key: {key})")
            print(f"    Section: {info['section']}  Kind: {info['kind']}")
    print()
