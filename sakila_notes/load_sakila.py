"""
Sakila Loader

Downloads the Sakila sample database, loads it through the mysql (or
mariadb) command-line client and derives the payment partitions the views
chapter combines in payment_all.
"""

import logging
import os
import shutil
import subprocess
import tarfile
import time
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import requests

from sakila_notes.config import DATA_DIR, DB_CONFIG, SAKILA_CONFIG
from sakila_notes.db_connector import DatabaseConnection
from sakila_notes.utils import format_number, format_time

logger = logging.getLogger(__name__)

PARTITION_TABLES = {
    'payment_historic': "payment_date < ?",
    'payment_current': "payment_date >= ?",
}


class SakilaLoader:
    """
    Loads the Sakila schema and data into the configured server.
    """

    def __init__(self, data_dir: Optional[Path] = None,
                 db_config: Optional[dict] = None):
        """
        Initialize the loader.

        Args:
            data_dir: Where the archive is downloaded and extracted
            db_config: Optional connection settings overriding DB_CONFIG
        """
        self.data_dir = Path(data_dir or DATA_DIR)
        self.db_config = {**DB_CONFIG, **(db_config or {})}
        self.archive_path = self.data_dir / SAKILA_CONFIG['archive_name']
        self.extract_dir = self.data_dir / 'sakila-db'

    def download(self, force: bool = False) -> Path:
        """
        Download the Sakila archive unless it is already present.

        Returns:
            Path to the archive

        Raises:
            requests.HTTPError: If the download fails
        """
        self.data_dir.mkdir(parents=True, exist_ok=True)

        if self.archive_path.exists() and not force:
            logger.info("%s already exists, skipping download", self.archive_path.name)
            return self.archive_path

        url = SAKILA_CONFIG['archive_url']
        print(f"Downloading {url}...")
        response = requests.get(url, timeout=60)
        response.raise_for_status()

        with open(self.archive_path, 'wb') as f:
            f.write(response.content)

        print(f"  Downloaded {format_number(len(response.content))} bytes")
        return self.archive_path

    def extract(self) -> Tuple[Path, Path]:
        """
        Extract the schema and data scripts from the archive.

        Returns:
            Tuple of (schema_path, data_path)

        Raises:
            FileNotFoundError: If the archive or a script inside it is missing
        """
        if not self.archive_path.exists():
            raise FileNotFoundError(f"Sakila archive not found: {self.archive_path}")

        wanted = {SAKILA_CONFIG['schema_file'], SAKILA_CONFIG['data_file']}
        self.extract_dir.mkdir(parents=True, exist_ok=True)

        with tarfile.open(self.archive_path, 'r:gz') as archive:
            for member in archive.getmembers():
                name = Path(member.name).name
                if member.isfile() and name in wanted:
                    source = archive.extractfile(member)
                    (self.extract_dir / name).write_bytes(source.read())

        schema_path = self.extract_dir / SAKILA_CONFIG['schema_file']
        data_path = self.extract_dir / SAKILA_CONFIG['data_file']
        for path in (schema_path, data_path):
            if not path.exists():
                raise FileNotFoundError(f"{path.name} not found in {self.archive_path}")
        return schema_path, data_path

    def detect_client(self) -> Optional[str]:
        """
        Detect a mysql-compatible command-line client.

        Returns:
            Path to the client executable or None if not found
        """
        for candidate in SAKILA_CONFIG['client_candidates']:
            path = shutil.which(candidate)
            if path:
                return path

        for directory in SAKILA_CONFIG['client_paths']:
            for candidate in SAKILA_CONFIG['client_candidates']:
                path = Path(directory) / candidate
                if path.exists():
                    return str(path)

        return None

    def client_command(self, client_path: str) -> Tuple[List[str], Dict[str, str]]:
        """
        Build the client invocation and its environment.

        The password is passed through MYSQL_PWD so it never shows up in
        the process list.
        """
        cmd = [
            client_path,
            f"--host={self.db_config['host']}",
            f"--port={self.db_config['port']}",
            f"--user={self.db_config['user']}",
        ]
        env = {**os.environ, 'MYSQL_PWD': str(self.db_config['password'])}
        return cmd, env

    def source_script(self, client_path: str, script: Path) -> float:
        """
        Run a SQL script through the command-line client.

        Returns:
            Elapsed time in seconds

        Raises:
            RuntimeError: If the client exits with an error or times out
        """
        cmd, env = self.client_command(client_path)
        print(f"Sourcing {script.name}...")
        start = time.time()

        timeout = SAKILA_CONFIG['client_timeout']
        with open(script, 'rb') as f:
            try:
                result = subprocess.run(
                    cmd,
                    stdin=f,
                    capture_output=True,
                    env=env,
                    timeout=timeout
                )
            except subprocess.TimeoutExpired:
                raise RuntimeError(f"{script.name} did not finish within {timeout} seconds")

        elapsed = time.time() - start
        if result.returncode != 0:
            stderr = result.stderr.decode('utf-8', errors='replace').strip()
            raise RuntimeError(f"{script.name} failed with return code {result.returncode}: {stderr}")

        print(f"  Done in {format_time(elapsed)}")
        return elapsed

    def create_partitions(self, conn: DatabaseConnection) -> Dict[str, int]:
        """
        Split payment into payment_historic and payment_current.

        Returns:
            Row count per partition table
        """
        cutoff = SAKILA_CONFIG['partition_cutoff']
        counts = {}
        for table, condition in PARTITION_TABLES.items():
            conn.execute_write(f"DROP TABLE IF EXISTS {table}")
            conn.execute_write(
                f"CREATE TABLE {table} AS SELECT * FROM payment WHERE {condition}",
                (cutoff,)
            )
            counts[table] = conn.get_table_count(table)
            print(f"  {table}: {format_number(counts[table])} rows")
        return counts

    def validate_counts(self, conn: DatabaseConnection) -> bool:
        """
        Compare core table row counts with the canonical Sakila counts.

        Returns:
            True if every count matches
        """
        print("\n  Validation:")
        all_match = True
        for table, expected in SAKILA_CONFIG['expected_row_counts'].items():
            actual = conn.get_table_count(table)
            status = "OK" if actual == expected else "MISMATCH"
            if actual != expected:
                all_match = False
                logger.warning("%s has %d rows, expected %d", table, actual, expected)
            print(f"    {table:<12} {format_number(actual):>8}  {status}")
        return all_match

    def run(self, skip_download: bool = False, skip_schema: bool = False) -> bool:
        """
        Run the whole load.

        Args:
            skip_download: Use an archive that is already on disk
            skip_schema: Only (re)create the partitions and validate

        Returns:
            True if the load succeeded and counts validated

        Raises:
            ValueError: If the scripts would load into a schema other than
                the configured database
        """
        schema = SAKILA_CONFIG['schema_name']
        if not skip_schema and self.db_config['database'] != schema:
            raise ValueError(
                f"{SAKILA_CONFIG['schema_file']} always creates the '{schema}' schema, "
                f"but DB_NAME is '{self.db_config['database']}'. "
                f"Set DB_NAME={schema} or load with --skip-schema."
            )

        print("=" * 70)
        print("Sakila Loader")
        print("=" * 70)

        if not skip_schema:
            if not skip_download:
                self.download()
            schema_path, data_path = self.extract()

            client_path = self.detect_client()
            if client_path is None:
                raise FileNotFoundError(
                    "No mysql or mariadb command-line client found in PATH"
                )
            print(f"Using client: {client_path}")

            self.source_script(client_path, schema_path)
            self.source_script(client_path, data_path)

        print("\nCreating payment partitions...")
        with DatabaseConnection(self.db_config) as conn:
            self.create_partitions(conn)
            return self.validate_counts(conn)
