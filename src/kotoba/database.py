import os
import sqlite3
from typing import List


def get_db_connection(db_path: str):
    """Opens the SQLite database that stores warning and error log records."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


def create_log_table(db_path: str):
    conn = get_db_connection(db_path)
    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
                level TEXT,
                logger TEXT,
                message TEXT
            );
        """
        )
    conn.close()


def init_db(db_path: str):
    db_dir = os.path.dirname(db_path)
    if db_dir and not os.path.exists(db_dir):
        os.makedirs(db_dir, exist_ok=True)
    create_log_table(db_path)


def recent_logs(db_path: str, limit: int = 50) -> List[dict]:
    """Newest log records first."""
    conn = get_db_connection(db_path)
    try:
        rows = conn.execute(
            "SELECT id, timestamp, level, logger, message FROM logs "
            "ORDER BY id DESC LIMIT ?",
            (limit,),
        ).fetchall()
    finally:
        conn.close()
    return [dict(row) for row in rows]
