from __future__ import annotations

from dataclasses import dataclass

import duckdb

MEMORY = ":memory:"


@dataclass(frozen=True)
class DB:
    path: str = MEMORY
    threads: int = 4

    def connect(self) -> duckdb.DuckDBPyConnection:
        conn = duckdb.connect(self.path)
        conn.execute(f"PRAGMA threads={int(self.threads)}")
        conn.execute("PRAGMA enable_progress_bar=false")
        return conn
