"""
Sakila Notes Package

Annotated SQL study notes on analytic window functions and views, with the
tooling to run them against the Sakila sample schema:
- config: Database configuration and settings
- db_connector: Database connection management
- views: View definitions, installation and inspection
- exercises: Annotated statement catalog and notes rendering
- results_store: Recorded result-set expectations
- runner: Runs exercises and compares against expectations
- load_sakila: Sakila sample database loader
- cli: Command line entry point
"""

__version__ = "1.0.0"
__author__ = "Sakila Notes Team"
