"""
View Definitions

The views built in the Ch. 14 notes. Each view is stored as an optional
explicit column list plus its SELECT body, so the same definition drives
both the notes and installation on the server.

Whether a view is updatable is decided by the server; get_view_info reads
its verdict from information_schema.VIEWS.
"""

import logging
from typing import Dict, List, Optional

from sakila_notes.db_connector import DatabaseConnection

logger = logging.getLogger(__name__)

VIEWS = {
    "customer_vw": {
        "description": "Customers with the email address masked",
        "columns": ["customer_id", "first_name", "last_name", "email"],
        "select": """
SELECT
    customer_id,
    first_name,
    last_name,
    CONCAT(SUBSTR(email, 1, 2), '#####', SUBSTR(email, -4))
FROM customer""",
        "requires_tables": ["customer"],
    },

    "customer_vw_active": {
        "description": "Masked customers restricted to active rows",
        "columns": ["customer_id", "first_name", "last_name", "email"],
        "select": """
SELECT
    customer_id,
    first_name,
    last_name,
    CONCAT(SUBSTR(email, 1, 2), '#####', SUBSTR(email, -4))
FROM customer
WHERE active = 1""",
        "requires_tables": ["customer"],
    },

    "sales_by_film_category": {
        "description": "Total sales per film category, preaggregated",
        "columns": None,
        "select": """
SELECT
    c.name AS category,
    SUM(p.amount) AS total_sales
FROM payment AS p
INNER JOIN rental AS r ON p.rental_id = r.rental_id
INNER JOIN inventory AS i ON r.inventory_id = i.inventory_id
INNER JOIN film_category AS fc ON i.film_id = fc.film_id
INNER JOIN category AS c ON fc.category_id = c.category_id
GROUP BY 1
ORDER BY 2 DESC""",
        "requires_tables": ["payment", "rental", "inventory", "film_category", "category"],
        # shipped by sakila-schema.sql; replaced with the same definition, never dropped
        "builtin": True,
    },

    "film_stats": {
        "description": "Film summary built from scalar subqueries",
        "columns": None,
        "select": """
SELECT f.film_id, f.title, f.description, f.rating,
    (SELECT c.name
     FROM category c
        INNER JOIN film_category fc
        ON c.category_id = fc.category_id
     WHERE fc.film_id = f.film_id) AS category_name,
    (SELECT COUNT(*)
     FROM film_actor fa
     WHERE fa.film_id = f.film_id) AS num_actors,
    (SELECT COUNT(*)
     FROM inventory i
     WHERE i.film_id = f.film_id) AS inventory_count,
    (SELECT COUNT(*)
     FROM inventory i
        INNER JOIN rental r
        ON i.inventory_id = r.inventory_id
     WHERE i.film_id = f.film_id) AS num_rentals
FROM film f""",
        "requires_tables": ["film", "category", "film_category", "film_actor",
                            "inventory", "rental"],
    },

    "payment_all": {
        "description": "Current and historic payment partitions combined",
        "columns": ["payment_id", "customer_id", "staff_id", "rental_id",
                    "amount", "payment_date", "last_update"],
        "select": """
SELECT
    payment_id,
    customer_id,
    staff_id,
    rental_id,
    amount,
    payment_date,
    last_update
FROM payment_historic
UNION ALL
SELECT
    payment_id,
    customer_id,
    staff_id,
    rental_id,
    amount,
    payment_date,
    last_update
FROM payment_current""",
        "requires_tables": ["payment_historic", "payment_current"],
    },

    "customer_details": {
        "description": "Customers joined to address, city and country",
        "columns": None,
        "select": """
SELECT
    c.customer_id,
    c.store_id,
    c.first_name,
    c.last_name,
    c.address_id,
    c.active,
    c.create_date,
    a.address,
    ct.city,
    cn.country,
    a.postal_code
FROM customer c
    INNER JOIN address a
    ON c.address_id = a.address_id
    INNER JOIN city ct
    ON ct.city_id = a.city_id
    INNER JOIN country cn
    ON cn.country_id = ct.country_id
ORDER BY 1""",
        "requires_tables": ["customer", "address", "city", "country"],
    },

    "film_ctgry_actor": {
        "description": "Film titles with their category and actor names",
        "columns": None,
        "select": """
SELECT
    f.title,
    c.name AS category_name,
    a.first_name,
    a.last_name
FROM film f
INNER JOIN film_actor fa
    ON f.film_id = fa.film_id
INNER JOIN film_category fc
    ON f.film_id = fc.film_id
INNER JOIN actor a
    ON fa.actor_id = a.actor_id
INNER JOIN category c
    ON fc.category_id = c.category_id""",
        "requires_tables": ["film", "film_actor", "film_category", "actor", "category"],
    },

    "country_payments": {
        "description": "Every country with total payments from its customers",
        "columns": None,
        "select": """
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
     WHERE cn.country_id = ct.country_id) AS tot_payments
FROM country cn""",
        "requires_tables": ["country", "city", "address", "customer", "payment"],
    },
}


def _get_view(name: str) -> dict:
    if name not in VIEWS:
        raise KeyError(f"View '{name}' not found. Available views: {list(VIEWS.keys())}")
    return VIEWS[name]


def create_view_sql(name: str) -> str:
    """
    Build the CREATE OR REPLACE VIEW statement for a view.

    Args:
        name: View name

    Returns:
        SQL statement text (no trailing semicolon)

    Raises:
        KeyError: If the view is not defined
    """
    view = _get_view(name)
    header = f"CREATE OR REPLACE VIEW {name}"
    if view['columns']:
        columns = ",\n    ".join(view['columns'])
        header += f"\n   ({columns})"
    return f"{header}\nAS{view['select']}"


def install_order(names: Optional[List[str]] = None) -> List[str]:
    """
    Resolve view names into installation order.

    Views only read base tables, so declaration order is a valid order.

    Raises:
        KeyError: If a name is not a defined view
    """
    if names is None:
        return list(VIEWS.keys())
    for name in names:
        _get_view(name)
    return [name for name in VIEWS if name in names]


def missing_tables(conn: DatabaseConnection, name: str) -> List[str]:
    """
    List base tables a view reads that do not exist in the current schema.
    """
    required = _get_view(name)['requires_tables']
    placeholders = ", ".join(["?"] * len(required))
    sql = f"""
        SELECT table_name
        FROM information_schema.tables
        WHERE table_schema = DATABASE()
        AND table_name IN ({placeholders})
    """
    found = {row[0].lower() for row in conn.execute_query(sql, tuple(required))}
    return [table for table in required if table.lower() not in found]


def install_views(conn: DatabaseConnection, names: Optional[List[str]] = None) -> List[str]:
    """
    Create (or replace) views on the server.

    Args:
        conn: Open database connection
        names: Views to install; all views when omitted

    Returns:
        Names of the installed views

    Raises:
        RuntimeError: If a base table a view reads is missing
        mariadb.Error: If the server rejects a definition
    """
    installed = []
    for name in install_order(names):
        missing = missing_tables(conn, name)
        if missing:
            raise RuntimeError(
                f"Cannot create view '{name}': missing tables {missing}. "
                "Run 'sakila-notes load' first."
            )
        conn.execute_write(create_view_sql(name))
        logger.info("Installed view %s", name)
        installed.append(name)
    return installed


def drop_views(conn: DatabaseConnection, names: Optional[List[str]] = None) -> List[str]:
    """
    Drop views in reverse installation order.

    Views that come with the stock Sakila schema are left in place.

    Returns:
        Names of the dropped views
    """
    dropped = []
    for name in reversed(install_order(names)):
        if VIEWS[name].get('builtin'):
            logger.info("Keeping Sakila view %s", name)
            continue
        conn.execute_write(f"DROP VIEW IF EXISTS {name}")
        logger.info("Dropped view %s", name)
        dropped.append(name)
    return dropped


def get_view_info(conn: DatabaseConnection, name: str) -> Dict[str, object]:
    """
    Read the server's metadata for an installed view.

    Args:
        conn: Open database connection
        name: View name

    Returns:
        Dictionary with installed, is_updatable, check_option and security_type
    """
    _get_view(name)
    sql = """
        SELECT
            is_updatable,
            check_option,
            security_type
        FROM information_schema.views
        WHERE table_schema = DATABASE()
        AND table_name = ?
    """
    result = conn.execute_query(sql, (name,))
    info = {'name': name, 'installed': bool(result)}

    if result:
        row = result[0]
        info.update({
            'is_updatable': row[0] == 'YES',
            'check_option': row[1],
            'security_type': row[2]
        })

    return info


def view_status(conn: DatabaseConnection) -> List[Dict[str, object]]:
    """
    Report installation and updatability of every defined view.
    """
    return [get_view_info(conn, name) for name in VIEWS]
