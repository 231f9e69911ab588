# MySQL connection management for the document store
import os
import logging
from contextlib import contextmanager
from typing import Optional
import mysql.connector

logger = logging.getLogger(__name__)

_connection: Optional[mysql.connector.connection.MySQLConnection] = None

# Environment variables for database connection
MYSQL_HOST = os.getenv("MYSQL_HOST", "localhost")
MYSQL_USER = os.getenv("MYSQL_USER", "root")
MYSQL_PASSWORD = os.getenv("MYSQL_PASSWORD", "")
MYSQL_PORT = int(os.getenv("MYSQL_PORT", "3306"))
MYSQL_DATABASE = os.getenv("MYSQL_DATABASE", "eventcalendar")

def connection_config():
    """Connection parameters; no database is selected since it may not exist before bootstrap"""
    return {
        "host": MYSQL_HOST,
        "user": MYSQL_USER,
        "password": MYSQL_PASSWORD,
        "port": MYSQL_PORT,
        "charset": "utf8mb4",
        "autocommit": False,
    }

def get_connection():
    """Get the shared connection, reconnecting if it was dropped"""
    global _connection

    if _connection is None or not _connection.is_connected():
        try:
            _connection = mysql.connector.connect(**connection_config())
            logger.info(f"Connected to MySQL at {MYSQL_HOST}:{MYSQL_PORT}")
        except mysql.connector.Error as e:
            logger.error(f"Error connecting to database: {e}")
            raise

    return _connection

def get_cursor():
    """Get a new cursor from the database connection"""
    conn = get_connection()
    return conn.cursor()

@contextmanager
def transaction():
    """
    Cursor on the calendar database for one unit of work.

    Commits when the block finishes and rolls back when it raises a MySQL error,
    which is then re-raised. The cursor is closed either way.
    """
    cursor = get_cursor()
    try:
        cursor.execute(f"USE {MYSQL_DATABASE}")
        yield cursor
        get_connection().commit()
    except mysql.connector.Error:
        get_connection().rollback()
        raise
    finally:
        cursor.close()

def close_connection():
    """Close database connection"""
    global _connection
    if _connection and _connection.is_connected():
        _connection.close()
        _connection = None
        logger.info("Database connection closed")
