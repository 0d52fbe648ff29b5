import json
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path

from db.models import BOOL_COLUMNS, JSON_COLUMNS, SCHEMA_SQL


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


class Database:
    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        if getattr(self._local, "conn", None) is None:
            self._local.conn = sqlite3.connect(str(self.db_path))
            self._local.conn.row_factory = sqlite3.Row
            self._local.conn.execute("PRAGMA journal_mode=WAL")
            self._local.conn.execute("PRAGMA foreign_keys=ON")
        return self._local.conn

    def _init_schema(self):
        conn = self._get_conn()
        conn.executescript(SCHEMA_SQL)
        conn.commit()

    def close(self):
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            self._local.conn = None

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        conn = self._get_conn()
        cursor = conn.execute(sql, params)
        conn.commit()
        return cursor

    def fetchone(self, sql: str, params: tuple = ()) -> dict | None:
        cursor = self._get_conn().execute(sql, params)
        row = cursor.fetchone()
        return dict(row) if row else None

    def fetchall(self, sql: str, params: tuple = ()) -> list[dict]:
        cursor = self._get_conn().execute(sql, params)
        return [dict(row) for row in cursor.fetchall()]

    # -- Row helpers shared by the repositories --

    @staticmethod
    def encode(table: str, fields: dict) -> dict:
        encoded = dict(fields)
        for column in JSON_COLUMNS.get(table, ()):
            if column in encoded and encoded[column] is not None:
                encoded[column] = json.dumps(encoded[column], ensure_ascii=False)
        for column in BOOL_COLUMNS.get(table, ()):
            if column in encoded and encoded[column] is not None:
                encoded[column] = int(bool(encoded[column]))
        return encoded

    @staticmethod
    def decode(table: str, row: dict | None) -> dict | None:
        if row is None:
            return None
        for column in JSON_COLUMNS.get(table, ()):
            if row.get(column) is not None:
                row[column] = json.loads(row[column])
        for column in BOOL_COLUMNS.get(table, ()):
            if row.get(column) is not None:
                row[column] = bool(row[column])
        return row

    def insert(self, table: str, fields: dict) -> dict:
        fields = dict(fields)
        fields.setdefault("id", new_id())
        encoded = self.encode(table, fields)
        columns = ", ".join(encoded)
        placeholders = ", ".join("?" for _ in encoded)
        self.execute(f"INSERT INTO {table} ({columns}) VALUES ({placeholders})", tuple(encoded.values()))
        return self.get(table, fields["id"])

    def get(self, table: str, row_id: str) -> dict | None:
        return self.decode(table, self.fetchone(f"SELECT * FROM {table} WHERE id = ?", (row_id,)))

    def update(self, table: str, row_id: str, **fields) -> dict | None:
        if not fields:
            return self.get(table, row_id)
        encoded = self.encode(table, fields)
        set_clause = ", ".join(f"{k} = ?" for k in encoded)
        values = list(encoded.values()) + [row_id]
        self.execute(f"UPDATE {table} SET {set_clause} WHERE id = ?", tuple(values))
        return self.get(table, row_id)

    def delete(self, table: str, row_id: str) -> bool:
        cursor = self.execute(f"DELETE FROM {table} WHERE id = ?", (row_id,))
        return cursor.rowcount > 0

    def select(self, table: str, where: str = "", params: tuple = (), order_by: str = "",
               limit: int | None = None) -> list[dict]:
        sql = f"SELECT * FROM {table}"
        if where:
            sql += f" WHERE {where}"
        if order_by:
            sql += f" ORDER BY {order_by}"
        if limit is not None:
            sql += " LIMIT ?"
            params = tuple(params) + (limit,)
        return [self.decode(table, row) for row in self.fetchall(sql, params)]
