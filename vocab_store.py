"""Persistent vocabulary cache backed by SQLite.

One row per (normalized word, source language, target language). Writes go
through `upsert`, which merges the new senses into any existing row inside a
single write transaction, so concurrent writers for the same word converge
instead of overwriting each other.
"""
import os
import secrets
import sqlite3
import time
from pathlib import Path
from typing import List, Optional

from log import get_logger
from errors import CacheUnavailable
from merge import combine
from models import VocabularyDraft, VocabularyEntry
from normalize import normalize_text

logger = get_logger("lang2lang.vocab_store")

DB_PATH = Path(os.environ.get("LANG2LANG_DB_PATH", str(Path(__file__).parent / "lang2lang.db")))

_COLUMNS = "id, word, translation, part_of_speech, gender, source_language, target_language"


def _new_id() -> str:
    return secrets.token_hex(10)


def _row_to_entry(row: sqlite3.Row) -> VocabularyEntry:
    return VocabularyEntry(
        id=row["id"],
        word=row["word"],
        translation=row["translation"],
        partOfSpeech=row["part_of_speech"],
        gender=row["gender"],
        sourceLanguage=row["source_language"],
        targetLanguage=row["target_language"],
    )


class VocabularyStore:
    """Point lookups and merge-on-write upserts over the `vocabulary` table."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path) if db_path else DB_PATH

    def _connect(self) -> sqlite3.Connection:
        # isolation_level=None: transactions are opened explicitly in upsert
        conn = sqlite3.connect(str(self.db_path), timeout=10, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def init_db(self):
        try:
            conn = self._connect()
            try:
                conn.executescript("""
                    CREATE TABLE IF NOT EXISTS vocabulary (
                        id TEXT PRIMARY KEY,
                        word TEXT NOT NULL,
                        translation TEXT NOT NULL,
                        part_of_speech TEXT,
                        gender TEXT,
                        source_language TEXT NOT NULL,
                        target_language TEXT NOT NULL,
                        created_at REAL NOT NULL,
                        updated_at REAL NOT NULL,
                        UNIQUE (word, source_language, target_language)
                    );
                    CREATE INDEX IF NOT EXISTS idx_vocabulary_target
                        ON vocabulary (target_language, word);
                """)
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.exception("Failed to initialise vocabulary table", extra={"component": "vocab_store"})
            raise CacheUnavailable(f"Vocabulary store unavailable: {e}") from e

    async def find(self, word: str, source_language: str, target_language: str) -> Optional[VocabularyEntry]:
        """Exact-match lookup. `word` must already be normalized."""
        try:
            conn = self._connect()
            try:
                row = conn.execute(
                    f"SELECT {_COLUMNS} FROM vocabulary "
                    "WHERE word = ? AND source_language = ? AND target_language = ?",
                    (word, source_language, target_language),
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.exception("Vocabulary lookup failed", extra={"component": "vocab_store", "word": word})
            raise CacheUnavailable(f"Vocabulary store unavailable: {e}") from e
        return _row_to_entry(row) if row else None

    async def upsert(self, draft: VocabularyDraft) -> VocabularyEntry:
        """Insert a new entry or merge the draft's senses into the existing one.

        Returns the entry as persisted after the merge.
        """
        key = normalize_text(draft.word)
        try:
            conn = self._connect()
            try:
                try:
                    return self._upsert_locked(conn, key, draft)
                except sqlite3.IntegrityError:
                    # Another connection inserted the same key between our read
                    # and our insert; the second pass sees its row and merges.
                    logger.info("Upsert raced with a concurrent insert, merging", extra={
                        "component": "vocab_store", "word": key,
                    })
                    return self._upsert_locked(conn, key, draft)
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.exception("Vocabulary upsert failed", extra={"component": "vocab_store", "word": key})
            raise CacheUnavailable(f"Vocabulary store unavailable: {e}") from e

    def _upsert_locked(self, conn: sqlite3.Connection, key: str, draft: VocabularyDraft) -> VocabularyEntry:
        now = time.time()
        conn.execute("BEGIN IMMEDIATE")
        try:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM vocabulary "
                "WHERE word = ? AND source_language = ? AND target_language = ?",
                (key, draft.sourceLanguage, draft.targetLanguage),
            ).fetchone()
            if row:
                translation = combine([row["translation"], draft.translation]) or ""
                part_of_speech = combine([row["part_of_speech"], draft.partOfSpeech])
                gender = combine([row["gender"], draft.gender])
                conn.execute(
                    "UPDATE vocabulary SET translation = ?, part_of_speech = ?, gender = ?, updated_at = ? "
                    "WHERE id = ?",
                    (translation, part_of_speech, gender, now, row["id"]),
                )
                entry = VocabularyEntry(
                    id=row["id"],
                    word=row["word"],
                    translation=translation,
                    partOfSpeech=part_of_speech,
                    gender=gender,
                    sourceLanguage=row["source_language"],
                    targetLanguage=row["target_language"],
                )
                logger.debug("Merged vocabulary entry", extra={"component": "vocab_store", "word": key})
            else:
                entry = VocabularyEntry(
                    id=_new_id(),
                    word=key,
                    translation=combine([draft.translation]) or draft.translation,
                    partOfSpeech=combine([draft.partOfSpeech]),
                    gender=combine([draft.gender]),
                    sourceLanguage=draft.sourceLanguage,
                    targetLanguage=draft.targetLanguage,
                )
                conn.execute(
                    f"INSERT INTO vocabulary ({_COLUMNS}, created_at, updated_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (entry.id, entry.word, entry.translation, entry.partOfSpeech, entry.gender,
                     entry.sourceLanguage, entry.targetLanguage, now, now),
                )
                logger.info("Vocabulary entry added", extra={"component": "vocab_store", "word": key})
            conn.execute("COMMIT")
            return entry
        except BaseException:
            conn.execute("ROLLBACK")
            raise

    async def get_by_word(self, word: str, target_language: str,
                          source_language: Optional[str] = None) -> Optional[VocabularyEntry]:
        key = normalize_text(word)
        query = f"SELECT {_COLUMNS} FROM vocabulary WHERE word = ? AND target_language = ?"
        params = [key, target_language]
        if source_language:
            query += " AND source_language = ?"
            params.append(source_language)
        try:
            conn = self._connect()
            try:
                row = conn.execute(query + " ORDER BY created_at LIMIT 1", params).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.exception("Vocabulary lookup failed", extra={"component": "vocab_store", "word": key})
            raise CacheUnavailable(f"Vocabulary store unavailable: {e}") from e
        return _row_to_entry(row) if row else None

    async def list_by_target_language(self, target_language: str) -> List[VocabularyEntry]:
        try:
            conn = self._connect()
            try:
                rows = conn.execute(
                    f"SELECT {_COLUMNS} FROM vocabulary WHERE target_language = ? ORDER BY word, source_language",
                    (target_language,),
                ).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.exception("Vocabulary listing failed", extra={
                "component": "vocab_store", "target_language": target_language,
            })
            raise CacheUnavailable(f"Vocabulary store unavailable: {e}") from e
        return [_row_to_entry(r) for r in rows]

    async def count(self) -> int:
        try:
            conn = self._connect()
            try:
                return conn.execute("SELECT COUNT(*) FROM vocabulary").fetchone()[0]
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.exception("Vocabulary count failed", extra={"component": "vocab_store"})
            raise CacheUnavailable(f"Vocabulary store unavailable: {e}") from e
