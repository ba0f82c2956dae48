"""
Database Configuration and Settings

This module contains all configuration settings for the Sakila notes project,
including database credentials, output paths, runner settings and the
sample database download location.
"""

import os
from pathlib import Path

# Working directory for data, expectations, notes and run results
PROJECT_ROOT = Path(os.getenv('SAKILA_NOTES_HOME', Path.cwd()))

# Database configuration
DB_CONFIG = {
    'host': os.getenv('DB_HOST', 'localhost'),
    'port': int(os.getenv('DB_PORT', 3306)),
    'user': os.getenv('DB_USER', 'root'),
    'password': os.getenv('DB_PASSWORD', 'your_password'),
    'database': os.getenv('DB_NAME', 'sakila')
}

# Chapter titles, in the order the notes are read
CHAPTERS = {
    14: 'Ch. 14: Views',
    16: 'Ch. 16: Analytic Functions',
}

# Data paths
DATA_DIR = PROJECT_ROOT / 'data'
EXPECTED_DIR = Path(os.getenv('SAKILA_EXPECTED_DIR', PROJECT_ROOT / 'expected'))
NOTES_DIR = PROJECT_ROOT / 'notes'

# Exercise runner settings
RUNNER_CONFIG = {
    'float_tolerance': 0.001,   # Absolute tolerance when comparing floats
    'install_views': True,      # Install the views the selected exercises require
}

# Sakila sample database
SAKILA_CONFIG = {
    'archive_url': 'https://downloads.mysql.com/docs/sakila-db.tar.gz',
    'archive_name': 'sakila-db.tar.gz',
    'schema_name': 'sakila',           # Hardcoded in sakila-schema.sql
    'schema_file': 'sakila-schema.sql',
    'data_file': 'sakila-data.sql',
    'client_candidates': ['mariadb', 'mysql'],
    'client_paths': [
        '/usr/bin',
        '/usr/local/bin',
        '/usr/local/mysql/bin',
        '/opt/homebrew/bin',
    ],
    'client_timeout': 600,
    # payment rows before this date go to payment_historic, the rest to payment_current
    'partition_cutoff': '2005-08-01',
    'expected_row_counts': {
        'actor': 200,
        'film': 1000,
        'customer': 599,
        'rental': 16044,
        'payment': 16049,
        'inventory': 4581,
    }
}

# Output settings
RESULTS_DIR = PROJECT_ROOT / 'results' / 'runs'
TIMESTAMP_FORMAT = '%Y%m%d_%H%M%S'

# Streamlit dashboard settings
DASHBOARD_CONFIG = {
    'page_title': 'Sakila Notes - Window Functions & Views',
    'page_icon': '',
    'layout': 'wide',
    'default_chart_height': 400,
    'default_table_height': 500
}

# Logging configuration
LOGGING_CONFIG = {
    'level': os.getenv('LOG_LEVEL', 'INFO'),
    'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    'datefmt': '%Y-%m-%d %H:%M:%S'
}


def validate_config():
    """
    Validate configuration settings and create necessary directories.

    Raises:
        ValueError: If required configuration is missing or invalid
    """
    for directory in [DATA_DIR, EXPECTED_DIR, NOTES_DIR, RESULTS_DIR]:
        directory.mkdir(parents=True, exist_ok=True)

    required_keys = ['host', 'port', 'user', 'password', 'database']
    missing_keys = [key for key in required_keys if key not in DB_CONFIG]
    if missing_keys:
        raise ValueError(f"Missing required database config keys: {missing_keys}")

    if RUNNER_CONFIG['float_tolerance'] < 0:
        raise ValueError("float_tolerance must not be negative")

    return True
