"""
Stonks Database - SQLite persistence for players and game logs.

Every balance change goes through apply_change(), which runs the guarded
UPDATE and the game_logs INSERT on one connection, committed together. A
balance can therefore never go negative and never drift from the log.
"""
import sqlite3
from pathlib import Path
from typing import List, Optional, Dict, Any
from contextlib import contextmanager
from loguru import logger

from utils.error_handler import (
    GameRuleError,
    InsufficientFundsError,
    PlayerExistsError,
    PlayerNotFoundError,
)
from src.utils.logger import audit_log
from utils.platform import now_ist, check_disk_space


DB_PATH = Path(__file__).parent.parent / "data" / "stonks.db"

DEFAULT_STARTING_STONKS = 200

RESULT_PLAYING = "PLAYING"

# Current schema version
SCHEMA_VERSION = 2

# Migration scripts (version -> SQL)
MIGRATIONS = {
    2: """
        -- v2: per-game lookups for play counting (interrogator difficulty)
        CREATE INDEX IF NOT EXISTS idx_logs_player_game
            ON game_logs(player_uid, game_title);
    """,
}


def normalize_uid(uid: str) -> str:
    """Player ids are case-insensitive and stored upper case."""
    if uid is None or not str(uid).strip():
        raise ValueError("uid is required")
    return str(uid).strip().upper()


def _now() -> str:
    return now_ist().replace(tzinfo=None).isoformat()


class StonksDB:
    """
    SQLite-backed player ledger.

    Stores:
    - players: uid, display name, Stonks balance
    - game_logs: one row per entry fee, payout or result
    """

    def __init__(self, db_path: Optional[Path] = None,
                 starting_stonks: int = DEFAULT_STARTING_STONKS):
        self.db_path = Path(db_path or DB_PATH)
        self.starting_stonks = starting_stonks
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()
        self._run_migrations()
        if not check_disk_space(self.db_path.parent, min_mb=50):
            logger.critical(f"LOW DISK SPACE: Less than 50MB free at {self.db_path.parent}")

    @contextmanager
    def _conn(self):
        conn = sqlite3.connect(str(self.db_path), timeout=10)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self):
        with self._conn() as conn:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS players (
                    uid TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    stonks INTEGER NOT NULL DEFAULT 0 CHECK (stonks >= 0),
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS game_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    player_uid TEXT NOT NULL,
                    game_title TEXT NOT NULL,
                    result TEXT NOT NULL,
                    stonks_change INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY (player_uid) REFERENCES players(uid) ON DELETE CASCADE
                );

                CREATE INDEX IF NOT EXISTS idx_players_stonks ON players(stonks);
                CREATE INDEX IF NOT EXISTS idx_logs_player ON game_logs(player_uid);
                CREATE INDEX IF NOT EXISTS idx_logs_created ON game_logs(created_at);
            """)
        logger.debug(f"StonksDB initialized at {self.db_path}")

    def _run_migrations(self):
        """Run forward-only schema migrations."""
        with self._conn() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
            """)

            row = conn.execute(
                "SELECT MAX(version) as v FROM schema_version"
            ).fetchone()
            current_version = row['v'] if row and row['v'] else 1

            for version in sorted(MIGRATIONS.keys()):
                if version > current_version:
                    logger.info(f"[DB] Applying migration v{version}...")
                    try:
                        conn.executescript(MIGRATIONS[version])
                        conn.execute(
                            "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                            (version, _now())
                        )
                        logger.info(f"[DB] Migration v{version} applied successfully")
                    except sqlite3.Error as e:
                        logger.error(f"[DB] Migration v{version} failed: {e}")
                        raise

    def get_schema_version(self) -> int:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT MAX(version) as v FROM schema_version"
            ).fetchone()
            return row['v'] if row and row['v'] else 1

    # === PLAYER OPERATIONS ===

    def add_player(self, uid: str, name: Optional[str] = None,
                   stonks: Optional[int] = None) -> Dict[str, Any]:
        """Create a player. Raises PlayerExistsError on duplicate uid."""
        uid = normalize_uid(uid)
        balance = self.starting_stonks if stonks is None else int(stonks)
        if balance < 0:
            raise ValueError("stonks must be >= 0")
        name = (name or "").strip() or f"Player {uid}"

        try:
            with self._conn() as conn:
                conn.execute(
                    "INSERT INTO players (uid, name, stonks, created_at) VALUES (?, ?, ?, ?)",
                    (uid, name, balance, _now())
                )
        except sqlite3.IntegrityError as e:
            raise PlayerExistsError(uid) from e

        logger.info(f"Player added: {uid} ({name}) with {balance} Stonks")
        return self.require_player(uid)

    def get_player(self, uid: str) -> Optional[Dict[str, Any]]:
        uid = normalize_uid(uid)
        with self._conn() as conn:
            row = conn.execute(
                "SELECT * FROM players WHERE uid = ?", (uid,)
            ).fetchone()
            return dict(row) if row else None

    def require_player(self, uid: str) -> Dict[str, Any]:
        """Like get_player() but raises PlayerNotFoundError."""
        player = self.get_player(uid)
        if player is None:
            raise PlayerNotFoundError(normalize_uid(uid))
        return player

    def list_players(self) -> List[Dict[str, Any]]:
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT * FROM players ORDER BY created_at"
            ).fetchall()
            return [dict(r) for r in rows]

    def delete_player(self, uid: str):
        """Delete a player and their logs."""
        uid = normalize_uid(uid)
        with self._conn() as conn:
            conn.execute("DELETE FROM game_logs WHERE player_uid = ?", (uid,))
            cursor = conn.execute("DELETE FROM players WHERE uid = ?", (uid,))
            if cursor.rowcount == 0:
                raise PlayerNotFoundError(uid)
        logger.info(f"Player deleted: {uid}")

    def set_stonks(self, uid: str, amount: int) -> Dict[str, Any]:
        """Admin override of a balance. Logged as an ADMIN game log."""
        uid = normalize_uid(uid)
        amount = int(amount)
        if amount < 0:
            raise ValueError("stonks must be >= 0")
        with self._conn() as conn:
            row = conn.execute(
                "SELECT stonks FROM players WHERE uid = ?", (uid,)
            ).fetchone()
            if row is None:
                raise PlayerNotFoundError(uid)
            delta = amount - row['stonks']
            conn.execute("UPDATE players SET stonks = ? WHERE uid = ?", (amount, uid))
            conn.execute(
                "INSERT INTO game_logs (player_uid, game_title, result, stonks_change, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (uid, "Admin", "ADJUST", delta, _now())
            )
        audit_log("ADMIN SET", uid=uid, stonks=amount, delta=f"{delta:+d}")
        return self.require_player(uid)

    def reset_all_stonks(self, amount: Optional[int] = None) -> int:
        """Reset every balance. Returns number of players touched."""
        amount = self.starting_stonks if amount is None else int(amount)
        if amount < 0:
            raise ValueError("stonks must be >= 0")
        with self._conn() as conn:
            cursor = conn.execute("UPDATE players SET stonks = ?", (amount,))
            count = cursor.rowcount
        audit_log("ADMIN RESET", players=count, stonks=amount)
        return count

    # === LEDGER ===

    def _change(self, conn, uid: str, delta: int, game_title: str, result: str) -> int:
        """Guarded UPDATE + log row on an open connection. Returns new balance."""
        cursor = conn.execute(
            "UPDATE players SET stonks = stonks + ? WHERE uid = ? AND stonks + ? >= 0",
            (delta, uid, delta)
        )
        if cursor.rowcount == 0:
            row = conn.execute(
                "SELECT stonks FROM players WHERE uid = ?", (uid,)
            ).fetchone()
            if row is None:
                raise PlayerNotFoundError(uid)
            raise InsufficientFundsError(uid, row['stonks'], -delta)

        conn.execute(
            "INSERT INTO game_logs (player_uid, game_title, result, stonks_change, created_at) "
            "VALUES (?, ?, ?, ?, ?)",
            (uid, game_title, result, delta, _now())
        )
        return conn.execute(
            "SELECT stonks FROM players WHERE uid = ?", (uid,)
        ).fetchone()['stonks']

    def apply_change(self, uid: str, delta: int, game_title: str, result: str) -> int:
        """
        Atomically add `delta` to a balance and log it. Returns new balance.

        Raises:
            PlayerNotFoundError: unknown uid
            InsufficientFundsError: balance would go negative
        """
        uid = normalize_uid(uid)
        delta = int(delta)
        with self._conn() as conn:
            balance = self._change(conn, uid, delta, game_title, result)

        audit_log("STONKS", uid=uid, game=game_title, result=result,
                  change=f"{delta:+d}", balance=balance)
        return balance

    def _open_count(self, conn, uid: str, game_title: str) -> int:
        row = conn.execute(
            "SELECT SUM(result = ?) AS opened, SUM(result != ?) AS closed "
            "FROM game_logs WHERE player_uid = ? AND game_title = ?",
            (RESULT_PLAYING, RESULT_PLAYING, uid, game_title)
        ).fetchone()
        return max(0, (row["opened"] or 0) - (row["closed"] or 0))

    def close_entry(self, uid: str, game_title: str, delta: int, result: str) -> int:
        """
        Pay out against an open entry and log the result. Returns new balance.

        An entry is open while the player has more PLAYING rows for the game
        than finished ones. The check and the payout share one write
        transaction, so two settles racing for the same entry cannot both pay.

        Raises:
            GameRuleError: no open entry for this game
            PlayerNotFoundError: unknown uid
        """
        uid = normalize_uid(uid)
        delta = int(delta)
        with self._conn() as conn:
            conn.execute("BEGIN IMMEDIATE")
            if self._open_count(conn, uid, game_title) == 0:
                if conn.execute("SELECT 1 FROM players WHERE uid = ?", (uid,)).fetchone() is None:
                    raise PlayerNotFoundError(uid)
                raise GameRuleError(f"No open {game_title} game to settle")
            balance = self._change(conn, uid, delta, game_title, result)

        audit_log("STONKS", uid=uid, game=game_title, result=result,
                  change=f"{delta:+d}", balance=balance)
        return balance

    def open_entries(self, uid: str, game_title: str) -> int:
        """PLAYING rows not yet matched by a result."""
        uid = normalize_uid(uid)
        with self._conn() as conn:
            return self._open_count(conn, uid, game_title)

    def log_game(self, uid: str, game_title: str, result: str, stonks_change: int = 0):
        """Record a game event without touching the balance."""
        uid = normalize_uid(uid)
        with self._conn() as conn:
            if conn.execute("SELECT 1 FROM players WHERE uid = ?", (uid,)).fetchone() is None:
                raise PlayerNotFoundError(uid)
            conn.execute(
                "INSERT INTO game_logs (player_uid, game_title, result, stonks_change, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (uid, game_title, result, int(stonks_change), _now())
            )

    def get_game_logs(self, uid: str, limit: int = 20) -> List[Dict[str, Any]]:
        """Most recent logs first."""
        uid = normalize_uid(uid)
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT * FROM game_logs WHERE player_uid = ? "
                "ORDER BY created_at DESC, id DESC LIMIT ?",
                (uid, limit)
            ).fetchall()
            return [dict(r) for r in rows]

    def count_plays(self, uid: str, game_title: str, result: Optional[str] = None) -> int:
        uid = normalize_uid(uid)
        sql = "SELECT COUNT(*) as n FROM game_logs WHERE player_uid = ? AND game_title = ?"
        params: list = [uid, game_title]
        if result is not None:
            sql += " AND result = ?"
            params.append(result)
        with self._conn() as conn:
            return conn.execute(sql, params).fetchone()['n']

    def get_leaderboard(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Top players by balance, ranked from 1."""
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT uid, name, stonks FROM players "
                "ORDER BY stonks DESC, created_at ASC LIMIT ?",
                (limit,)
            ).fetchall()
        board = []
        for rank, row in enumerate(rows, start=1):
            board.append({
                "rank": rank,
                "uid": row['uid'],
                "name": row['name'] or f"Player {row['uid']}",
                "stonks": row['stonks'],
            })
        return board


# Singleton
_stonks_db: Optional[StonksDB] = None


def get_stonks_db() -> StonksDB:
    """Get the global StonksDB instance (path and starting balance from config)."""
    global _stonks_db
    if _stonks_db is None:
        from config.settings import get_settings
        from config.game_config import CONFIG
        _stonks_db = StonksDB(
            db_path=get_settings().db_path,
            starting_stonks=CONFIG.economy.starting_stonks,
        )
    return _stonks_db
