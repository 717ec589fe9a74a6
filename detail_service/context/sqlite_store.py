"""SQLite-backed conversation store implementing ConversationStore with WAL + safe PRAGMAs"""
from __future__ import annotations

import datetime
import json
import sqlite3
from pathlib import Path
from typing import Any, Dict, List

from detail_service.core.interfaces import ConversationStore


class SqliteConversationStore(ConversationStore):
    def __init__(self, dsn: str = "sqlite:///./data/detail.db"):
        if dsn.startswith("sqlite:///"):
            path = dsn[len("sqlite:///") :]
        else:
            path = dsn

        if path == ":memory:":
            target = path
        else:
            p = Path(path).expanduser().resolve()
            p.parent.mkdir(parents=True, exist_ok=True)
            target = str(p)

        self.conn = sqlite3.connect(target, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._init_pragmas()
        self._init_schema()

    def _init_pragmas(self) -> None:
        cur = self.conn.cursor()
        cur.execute("PRAGMA journal_mode=WAL;")
        cur.execute("PRAGMA synchronous=NORMAL;")
        cur.execute("PRAGMA foreign_keys=ON;")
        self.conn.commit()

    def _init_schema(self) -> None:
        cur = self.conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS conversations (
                id TEXT PRIMARY KEY,
                created_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS turns (
                conversation_id TEXT NOT NULL,
                idx INTEGER NOT NULL,
                query TEXT NOT NULL,
                results TEXT NOT NULL,
                ts INTEGER NOT NULL,
                assistant_message TEXT NOT NULL DEFAULT '',
                PRIMARY KEY (conversation_id, idx),
                FOREIGN KEY(conversation_id) REFERENCES conversations(id) ON DELETE CASCADE
            )
            """
        )
        self.conn.commit()

    async def create_conversation(self, conversation_id: str, created_at: int) -> None:
        self.conn.execute(
            "INSERT OR IGNORE INTO conversations(id, created_at) VALUES (?, ?)",
            (conversation_id, datetime.datetime.fromtimestamp(created_at).isoformat()),
        )
        self.conn.commit()

    async def list_conversations(self) -> List[Dict[str, Any]]:
        rows = self.conn.execute(
            """
            SELECT c.id, c.created_at, COUNT(t.idx) AS turns
            FROM conversations c LEFT JOIN turns t ON t.conversation_id = c.id
            GROUP BY c.id ORDER BY c.created_at DESC
            """
        ).fetchall()
        return [
            {"conversation_id": r["id"], "created_at": r["created_at"], "turns": r["turns"]}
            for r in rows
        ]

    async def add_turn(self, conversation_id: str, query: str, results: List[Dict[str, Any]], timestamp: int) -> int:
        await self.create_conversation(conversation_id, int(datetime.datetime.now().timestamp()))
        idx = self.conn.execute(
            "SELECT COALESCE(MAX(idx) + 1, 0) FROM turns WHERE conversation_id = ?",
            (conversation_id,),
        ).fetchone()[0]
        self.conn.execute(
            "INSERT INTO turns(conversation_id, idx, query, results, ts) VALUES (?, ?, ?, ?, ?)",
            (conversation_id, idx, query, json.dumps(results), timestamp),
        )
        self.conn.commit()
        return idx

    async def set_assistant_message(self, conversation_id: str, index: int, message: str) -> None:
        self.conn.execute(
            "UPDATE turns SET assistant_message = ? WHERE conversation_id = ? AND idx = ?",
            (message, conversation_id, index),
        )
        self.conn.commit()

    async def get_turns(self, conversation_id: str) -> List[Dict[str, Any]]:
        rows = self.conn.execute(
            "SELECT query, results, ts, assistant_message FROM turns WHERE conversation_id = ? ORDER BY idx ASC",
            (conversation_id,),
        ).fetchall()
        return [
            {
                "query": r["query"],
                "results": json.loads(r["results"] or "[]"),
                "timestamp": r["ts"],
                "assistant_message": r["assistant_message"],
            }
            for r in rows
        ]

    async def delete_conversation(self, conversation_id: str) -> bool:
        cur = self.conn.cursor()
        cur.execute("DELETE FROM turns WHERE conversation_id = ?", (conversation_id,))
        cur.execute("DELETE FROM conversations WHERE id = ?", (conversation_id,))
        deleted = cur.rowcount
        self.conn.commit()
        return deleted > 0

    async def delete_all(self) -> int:
        cur = self.conn.cursor()
        count = cur.execute("SELECT COUNT(*) FROM conversations").fetchone()[0]
        cur.execute("DELETE FROM turns")
        cur.execute("DELETE FROM conversations")
        self.conn.commit()
        return count
