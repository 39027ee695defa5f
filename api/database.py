"""
PayTR Checkout API -- Database connection pool

Uses mysql-connector-python with a connection pool for concurrent requests.
The shop tables (carts, line items, addresses, payment sessions) are owned
by the host platform; we only read carts and write payment sessions.
"""

import json

import mysql.connector
from mysql.connector import pooling
import config

_connection_pool = None


def get_connection_pool():
  """Get or create the MySQL connection pool (lazy init, thread-safe)."""
  global _connection_pool
  if _connection_pool is None:
    _connection_pool = pooling.MySQLConnectionPool(
      pool_name="paytr_api_pool",
      pool_size=5,
      pool_reset_session=True,
      host=config.MYSQL_HOST,
      port=config.MYSQL_PORT,
      user=config.MYSQL_USER,
      password=config.MYSQL_PASSWORD,
      database=config.MYSQL_DATABASE,
      charset="utf8mb4",
      collation="utf8mb4_unicode_ci",
      autocommit=False,
    )
  return _connection_pool


def get_database_connection():
  """Get a connection from the pool. Caller must close it when done."""
  pool = get_connection_pool()
  return pool.get_connection()


def execute_query_returning_one_row(query, params=None):
  """Execute a SELECT query and return a single row as dict, or None."""
  connection = get_database_connection()
  try:
    cursor = connection.cursor(dictionary=True)
    cursor.execute(query, params)
    row = cursor.fetchone()
    cursor.close()
    return row
  finally:
    connection.close()


def execute_query_returning_all_rows(query, params=None):
  """Execute a SELECT query and return all rows as list of dicts."""
  connection = get_database_connection()
  try:
    cursor = connection.cursor(dictionary=True)
    cursor.execute(query, params)
    rows = cursor.fetchall()
    cursor.close()
    return rows
  finally:
    connection.close()


def execute_insert_or_update(query, params=None):
  """Execute an INSERT/UPDATE/DELETE and commit. Returns rowcount."""
  connection = get_database_connection()
  try:
    cursor = connection.cursor()
    cursor.execute(query, params)
    connection.commit()
    affected_rows = cursor.rowcount
    cursor.close()
    return affected_rows
  except mysql.connector.Error:
    connection.rollback()
    raise
  finally:
    connection.close()


def decode_json_column(value, default=None):
  """
  MySQL JSON columns come back as str (or bytes/bytearray) from the
  connector. Returns the decoded value, or `default` for NULL/empty.
  """
  if value is None or value == "" or value == b"":
    return default
  if isinstance(value, (bytes, bytearray)):
    value = value.decode("utf-8")
  if isinstance(value, str):
    return json.loads(value)
  return value


def encode_json_column(value):
  """Serialize a dict for a JSON column. None stays NULL."""
  if value is None:
    return None
  return json.dumps(value, ensure_ascii=False)
