"""SQLite store for generated artworks and their likes.

Two tables are kept:

- ``artworks``: one row per generated (or fallback) image, with a
  denormalised ``likes`` counter
- ``votes``: one row per (artwork, voter IP) pair, enforcing at most one
  like per voter per artwork through a UNIQUE constraint

The ``likes`` counter always equals the number of vote rows for the artwork:
:meth:`ArtworkStore.like_artwork` inserts the vote and increments the
counter inside a single ``BEGIN IMMEDIATE`` transaction, and deleting an
artwork cascades to its votes through the foreign key.

Each operation opens its own short-lived connection, so the store can be
shared freely between threads.  The database runs in WAL mode so readers
are not blocked by a writer.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from firehorse.core.errors import NotFoundError, StoreError, ValidationError
from firehorse.core.prompt_enhancer import DEFAULT_STYLE

logger = logging.getLogger(__name__)

SORT_ORDERS: dict[str, str] = {
    "newest": "created_at DESC, id DESC",
    "popular": "likes DESC, created_at DESC, id DESC",
    "random": "RANDOM()",
}

ALL_STYLES = "all"
MAX_PAGE_SIZE = 100
MIN_SEARCH_LENGTH = 2

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS artworks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        prompt TEXT NOT NULL,
        image_url TEXT NOT NULL,
        style TEXT NOT NULL DEFAULT 'digital',
        user_ip TEXT,
        user_agent TEXT,
        likes INTEGER NOT NULL DEFAULT 0 CHECK (likes >= 0),
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS votes (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        artwork_id INTEGER NOT NULL REFERENCES artworks(id) ON DELETE CASCADE,
        voter_ip TEXT NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (artwork_id, voter_ip)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_artworks_created_at ON artworks(created_at DESC)",
    "CREATE INDEX IF NOT EXISTS idx_artworks_likes ON artworks(likes DESC)",
    "CREATE INDEX IF NOT EXISTS idx_artworks_style ON artworks(style)",
)

# Demo artworks shown on a fresh install.  Each sample gets as many synthetic
# votes as its like count so the counter invariant holds from the start.
SAMPLE_ARTWORKS: tuple[tuple[str, str, str, int], ...] = (
    (
        "金色火龙马，身披火焰，踏云而行，加密货币符号环绕",
        "https://images.unsplash.com/photo-1546182990-dffeafbe841d?ixlib=rb-4.0.3&auto=format&fit=crop&w=800&q=80",
        "digital",
        12,
    ),
    (
        "水墨风格龙马，火焰鬃毛，传统与现代艺术结合",
        "https://images.unsplash.com/photo-1545569341-9eb8b30979d9?ixlib=rb-4.0.3&auto=format&fit=crop&w=800&q=80",
        "chinese",
        9,
    ),
    (
        "赛博朋克火龙，机械铠甲，霓虹城市，数字货币流动",
        "https://images.unsplash.com/photo-1518709268805-4e9042af2176?ixlib=rb-4.0.3&auto=format&fit=crop&w=800&q=80",
        "cyberpunk",
        15,
    ),
    (
        "奇幻火龙神骏，魔法符文，星空背景，史诗场景",
        "https://images.unsplash.com/photo-1506905925346-21bda4d32df4?ixlib=rb-4.0.3&auto=format&fit=crop&w=800&q=80",
        "fantasy",
        7,
    ),
    (
        "火焰龙马，金色鳞甲，数字货币宇宙，未来科技感",
        "https://images.unsplash.com/photo-1519681393784-d120267933ba?ixlib=rb-4.0.3&auto=format&fit=crop&w=800&q=80",
        "digital",
        11,
    ),
    (
        "国风龙马，祥云火焰，传统图案融合现代数字艺术",
        "https://images.unsplash.com/photo-1500462918059-b1a0cb512f1d?ixlib=rb-4.0.3&auto=format&fit=crop&w=800&q=80",
        "chinese",
        5,
    ),
)


@dataclass
class Artwork:
    """One persisted artwork row."""

    id: int
    prompt: str
    image_url: str
    style: str
    user_ip: str | None
    user_agent: str | None
    likes: int
    created_at: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Artwork:
        return cls(**{key: row[key] for key in row.keys()})

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class LikeOutcome:
    """Result of a like attempt.

    ``already_voted`` is a normal outcome rather than an error: the voter
    had liked this artwork before and nothing was changed.
    """

    artwork_id: int
    likes: int
    already_voted: bool = False


@dataclass
class ArtworkPage:
    """One page of a gallery listing."""

    items: list[Artwork]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return (self.total + self.page_size - 1) // self.page_size


@dataclass
class GalleryStats:
    total_artworks: int
    total_likes: int
    today_artworks: int
    average_likes: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalArtworks": self.total_artworks,
            "totalLikes": self.total_likes,
            "todayArtworks": self.today_artworks,
            "averageLikes": self.average_likes,
        }


def _escape_like(query: str) -> str:
    return query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class ArtworkStore:
    """Manage the artwork gallery and its votes using SQLite.

    Args:
        db_path: Path to the SQLite database file.  Parent directories are
            created automatically.
        busy_timeout: Seconds a connection waits for a competing writer.
    """

    def __init__(self, db_path: Path | str, *, busy_timeout: float = 5.0):
        self.db_path = Path(db_path)
        self.busy_timeout = busy_timeout
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_db()
        logger.info(f"Initialized artwork store at {self.db_path}")

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection in autocommit mode with foreign keys enforced.

        Any ``sqlite3.Error`` escaping the block is logged and re-raised as
        :class:`StoreError`.
        """
        try:
            conn = sqlite3.connect(self.db_path, timeout=self.busy_timeout, isolation_level=None)
        except sqlite3.Error as e:
            logger.error(f"Could not open artwork store {self.db_path}: {e}", exc_info=True)
            raise StoreError(f"Could not open database: {e}") from e

        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
        except sqlite3.Error as e:
            logger.error(f"Artwork store error: {e}", exc_info=True)
            raise StoreError(f"Database error: {e}") from e
        finally:
            conn.close()

    @staticmethod
    @contextmanager
    def _transaction(conn: sqlite3.Connection) -> Iterator[None]:
        """Run the block in a write transaction, rolling back on any error."""
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")

    def _initialize_db(self) -> None:
        """Create the schema if it doesn't exist."""
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            for statement in _SCHEMA:
                conn.execute(statement)

    # ------------------------------------------------------------------
    # Artworks
    # ------------------------------------------------------------------

    def create_artwork(
        self,
        prompt: str,
        image_url: str,
        style: str = DEFAULT_STYLE,
        user_ip: str | None = None,
        user_agent: str | None = None,
    ) -> Artwork:
        """Insert a new artwork with zero likes and return the stored row."""
        with self._connect() as conn:
            with self._transaction(conn):
                cursor = conn.execute(
                    """
                    INSERT INTO artworks (prompt, image_url, style, user_ip, user_agent)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (prompt, image_url, style or DEFAULT_STYLE, user_ip, user_agent),
                )
                row = conn.execute(
                    "SELECT * FROM artworks WHERE id = ?", (cursor.lastrowid,)
                ).fetchone()

        artwork = Artwork.from_row(row)
        logger.info(f"Stored artwork {artwork.id} (style={artwork.style})")
        return artwork

    def get_artwork(self, artwork_id: int) -> Artwork:
        """Fetch one artwork.

        Raises:
            NotFoundError: If no artwork has this id.
        """
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM artworks WHERE id = ?", (artwork_id,)).fetchone()
        if row is None:
            raise NotFoundError(artwork_id)
        return Artwork.from_row(row)

    def list_artworks(
        self,
        page: int = 1,
        page_size: int = 12,
        sort: str = "newest",
        style: str | None = None,
    ) -> ArtworkPage:
        """Return one page of artworks.

        Args:
            page: One-based page number.  Pages past the end are empty.
            page_size: Items per page (1-100).
            sort: ``newest``, ``popular`` or ``random``.
            style: Restrict to one style; ``None`` or ``"all"`` disables the filter.

        Raises:
            ValidationError: For an unknown sort order or out-of-range paging.
        """
        if sort not in SORT_ORDERS:
            raise ValidationError(f"sort must be one of: {', '.join(SORT_ORDERS)}")
        if page < 1:
            raise ValidationError("page must be at least 1")
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

        where = ""
        params: list[Any] = []
        if style and style != ALL_STYLES:
            where = "WHERE style = ?"
            params.append(style)

        offset = (page - 1) * page_size
        with self._connect() as conn:
            total = conn.execute(f"SELECT COUNT(*) FROM artworks {where}", params).fetchone()[0]
            # Pages past the end never reach SQLite, whose integers are 64-bit.
            rows = []
            if offset < total:
                rows = conn.execute(
                    f"SELECT * FROM artworks {where} ORDER BY {SORT_ORDERS[sort]} LIMIT ? OFFSET ?",
                    [*params, page_size, offset],
                ).fetchall()

        return ArtworkPage(
            items=[Artwork.from_row(row) for row in rows],
            total=total,
            page=page,
            page_size=page_size,
        )

    def search_artworks(self, query: str, limit: int = 20) -> list[Artwork]:
        """Case-insensitive substring search over prompts, newest first.

        Case folding follows SQLite ``LIKE``, which folds ASCII letters only.

        Raises:
            ValidationError: If the query is shorter than two characters.
        """
        needle = (query or "").strip()
        if len(needle) < MIN_SEARCH_LENGTH:
            raise ValidationError(
                f"Search query must be at least {MIN_SEARCH_LENGTH} characters"
            )
        limit = max(1, min(limit, MAX_PAGE_SIZE))

        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM artworks
                WHERE prompt LIKE ? ESCAPE '\\'
                ORDER BY created_at DESC, id DESC
                LIMIT ?
                """,
                (f"%{_escape_like(needle)}%", limit),
            ).fetchall()
        return [Artwork.from_row(row) for row in rows]

    def delete_artwork(self, artwork_id: int) -> None:
        """Delete an artwork together with all of its votes.

        Raises:
            NotFoundError: If no artwork has this id.
        """
        with self._connect() as conn:
            with self._transaction(conn):
                cursor = conn.execute("DELETE FROM artworks WHERE id = ?", (artwork_id,))
                if cursor.rowcount == 0:
                    raise NotFoundError(artwork_id)
        logger.info(f"Deleted artwork {artwork_id}")

    def count_artworks(self) -> int:
        """Number of artworks in the gallery."""
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM artworks").fetchone()[0]

    def get_stats(self) -> GalleryStats:
        """Gallery-wide totals.  "Today" is the current UTC date."""
        with self._connect() as conn:
            total, total_likes, today = conn.execute(
                """
                SELECT
                    COUNT(*),
                    COALESCE(SUM(likes), 0),
                    COALESCE(SUM(date(created_at) = date('now')), 0)
                FROM artworks
                """
            ).fetchone()

        average = round(total_likes / total, 1) if total else 0
        return GalleryStats(
            total_artworks=total,
            total_likes=total_likes,
            today_artworks=today,
            average_likes=average,
        )

    # ------------------------------------------------------------------
    # Votes
    # ------------------------------------------------------------------

    def like_artwork(self, artwork_id: int, voter_ip: str) -> LikeOutcome:
        """Record a like from *voter_ip*, at most once per artwork.

        The vote insert and the counter increment commit together or not at
        all.  A second like from the same voter hits the UNIQUE constraint
        and is reported as ``already_voted`` without changing anything.

        Raises:
            NotFoundError: If no artwork has this id.
        """
        with self._connect() as conn:
            with self._transaction(conn):
                exists = conn.execute(
                    "SELECT 1 FROM artworks WHERE id = ?", (artwork_id,)
                ).fetchone()
                if exists is None:
                    raise NotFoundError(artwork_id)

                already_voted = False
                try:
                    conn.execute(
                        "INSERT INTO votes (artwork_id, voter_ip) VALUES (?, ?)",
                        (artwork_id, voter_ip),
                    )
                except sqlite3.IntegrityError as e:
                    if "UNIQUE" not in str(e):
                        raise
                    already_voted = True
                else:
                    conn.execute(
                        "UPDATE artworks SET likes = likes + 1 WHERE id = ?", (artwork_id,)
                    )

                likes = conn.execute(
                    "SELECT likes FROM artworks WHERE id = ?", (artwork_id,)
                ).fetchone()[0]

        if already_voted:
            logger.debug(f"Voter {voter_ip} already liked artwork {artwork_id}")
        else:
            logger.info(f"Artwork {artwork_id} liked by {voter_ip}: {likes} likes")
        return LikeOutcome(artwork_id=artwork_id, likes=likes, already_voted=already_voted)

    def count_votes(self, artwork_id: int) -> int:
        """Number of vote rows for an artwork (zero for unknown ids)."""
        with self._connect() as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM votes WHERE artwork_id = ?", (artwork_id,)
            ).fetchone()[0]

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def seed_samples(self) -> int:
        """Insert the demo artworks if the gallery is empty.

        Returns:
            Number of artworks inserted (0 when the gallery already had rows).
        """
        with self._connect() as conn:
            with self._transaction(conn):
                if conn.execute("SELECT COUNT(*) FROM artworks").fetchone()[0]:
                    return 0
                for prompt, image_url, style, likes in SAMPLE_ARTWORKS:
                    cursor = conn.execute(
                        "INSERT INTO artworks (prompt, image_url, style, likes) VALUES (?, ?, ?, ?)",
                        (prompt, image_url, style, likes),
                    )
                    conn.executemany(
                        "INSERT INTO votes (artwork_id, voter_ip) VALUES (?, ?)",
                        [(cursor.lastrowid, f"sample-voter-{n}") for n in range(likes)],
                    )

        logger.info(f"Seeded gallery with {len(SAMPLE_ARTWORKS)} sample artworks")
        return len(SAMPLE_ARTWORKS)
