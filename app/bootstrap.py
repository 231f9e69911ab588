# Schema bootstrap for the MySQL document store
import logging
import database

logger = logging.getLogger(__name__)


def check_db_is_setup():
    """Check if the calendar database exists and contains the documents table."""
    db_cursor = database.get_cursor()
    db_cursor.execute("SHOW DATABASES")
    databases = [db[0] for db in db_cursor.fetchall()]

    if database.MYSQL_DATABASE not in databases:
        return False

    db_cursor.execute(f"USE {database.MYSQL_DATABASE}")
    db_cursor.execute("SHOW TABLES")
    tables = [table[0] for table in db_cursor.fetchall()]

    database.get_connection().commit()

    return "documents" in tables


def create_db_and_scheme():
    """Create the calendar database and the documents table."""
    db_cursor = database.get_cursor()

    db_cursor.execute(f"CREATE DATABASE IF NOT EXISTS {database.MYSQL_DATABASE};")
    db_cursor.execute(f"USE {database.MYSQL_DATABASE};")
    # One row per leaf value; subtrees are read back with a path prefix query
    db_cursor.execute(
        """
        CREATE TABLE IF NOT EXISTS documents (
            path                 VARCHAR(768) CHARACTER SET utf8mb4 COLLATE utf8mb4_bin PRIMARY KEY,
            value                JSON         NOT NULL,
            updated_at           DATETIME     NOT NULL DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP
        );
        """
    )

    database.get_connection().commit()


def setup_database():
    """Ensure the database is configured, create the schema if needed."""
    logger.info("Checking if the database is set up...")
    if not check_db_is_setup():
        logger.info("Database not found or incomplete. Setting up...")
        create_db_and_scheme()
        logger.info("Database and tables created successfully.")
        return True
    else:
        logger.info("Database is already set up.")
        return False
