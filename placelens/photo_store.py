"""
Photo Store

Local SQLite storage for resolved captures: the image, where it was taken,
and what the pipeline decided the place is. A record is written once per
capture; afterwards only the label (extracted_text) can change, through a
user correction, and records are removed only by explicit deletion.
"""

import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from placelens.app_logger import get_logger
from placelens.categories import OTHER
from placelens.errors import PersistenceFailed
from placelens.models import PhotoRecord

log = get_logger(__name__)

_COLUMNS = (
    "id, timestamp, image_data, latitude, longitude, altitude, city, state, country, "
    "address, phone_number, extracted_text, category"
)

_SEARCH_FIELDS = ('extracted_text', 'category', 'address', 'city', 'state', 'country')


class PhotoStore:
    """
    Manages database operations for captured photos.
    """

    def __init__(self, db_path: str = "data/places.db"):
        """
        Initialize the store.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.lock = threading.Lock()

        self._initialize_database()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def _initialize_database(self):
        """Create database tables if they don't exist."""
        create_table_sql = """
        CREATE TABLE IF NOT EXISTS captured_photos (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp DATETIME NOT NULL,
            image_data BLOB NOT NULL,
            latitude REAL NOT NULL,
            longitude REAL NOT NULL,
            altitude REAL DEFAULT 0,
            city TEXT,
            state TEXT,
            country TEXT,
            address TEXT,
            phone_number TEXT,
            extracted_text TEXT,
            category TEXT,
            created_on DATETIME DEFAULT CURRENT_TIMESTAMP,
            updated_on DATETIME DEFAULT CURRENT_TIMESTAMP
        );

        CREATE INDEX IF NOT EXISTS idx_captured_photos_timestamp
            ON captured_photos(timestamp);

        CREATE INDEX IF NOT EXISTS idx_captured_photos_category
            ON captured_photos(category);
        """

        with self.lock:
            conn = self._connect()
            try:
                conn.executescript(create_table_sql)
                conn.commit()
                log.info("Photo store initialized: %s", self.db_path)
            except sqlite3.Error as e:
                log.error("Error initializing photo store: %s", e)
                raise PersistenceFailed(f"could not initialize {self.db_path}: {e}") from e
            finally:
                conn.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> PhotoRecord:
        return PhotoRecord(
            id=row['id'],
            timestamp=datetime.fromisoformat(row['timestamp']),
            image_bytes=bytes(row['image_data']),
            latitude=row['latitude'],
            longitude=row['longitude'],
            altitude=row['altitude'] or 0.0,
            city=row['city'],
            state=row['state'],
            country=row['country'],
            address=row['address'],
            phone_number=row['phone_number'],
            extracted_text=row['extracted_text'],
            category=row['category'],
        )

    def insert_photo(self, record: PhotoRecord) -> int:
        """
        Insert a captured photo.

        Args:
            record: Photo to save (its id is ignored)

        Returns:
            Inserted record ID

        Raises:
            PersistenceFailed: if the write fails
        """
        insert_sql = """
        INSERT INTO captured_photos (
            timestamp, image_data, latitude, longitude, altitude, city, state,
            country, address, phone_number, extracted_text, category
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """

        with self.lock:
            conn = self._connect()
            try:
                cursor = conn.cursor()
                cursor.execute(insert_sql, (
                    record.timestamp.isoformat(),
                    sqlite3.Binary(record.image_bytes),
                    record.latitude,
                    record.longitude,
                    record.altitude,
                    record.city,
                    record.state,
                    record.country,
                    record.address,
                    record.phone_number,
                    record.extracted_text,
                    record.category,
                ))
                record_id = cursor.lastrowid
                conn.commit()
            except sqlite3.Error as e:
                log.error("Error inserting photo: %s", e)
                conn.rollback()
                raise PersistenceFailed(f"could not save photo: {e}") from e
            finally:
                conn.close()

        log.info("Photo saved (id=%d, text=%r, category=%s)",
                 record_id, record.extracted_text, record.category)
        return record_id

    def get_photo(self, photo_id: int) -> Optional[PhotoRecord]:
        with self.lock:
            conn = self._connect()
            try:
                row = conn.execute(
                    f"SELECT {_COLUMNS} FROM captured_photos WHERE id = ?", (photo_id,)
                ).fetchone()
            finally:
                conn.close()
        return self._row_to_record(row) if row else None

    def get_all_photos(self, limit: int = 100, offset: int = 0) -> List[PhotoRecord]:
        """Photos newest first."""
        query = f"""
        SELECT {_COLUMNS} FROM captured_photos
        ORDER BY timestamp DESC, id DESC
        LIMIT ? OFFSET ?
        """
        with self.lock:
            conn = self._connect()
            try:
                rows = conn.execute(query, (limit, offset)).fetchall()
            finally:
                conn.close()
        return [self._row_to_record(row) for row in rows]

    def update_label(self, photo_id: int, extracted_text: str) -> bool:
        """
        Correct the place label of a saved photo.

        Returns:
            True if a record was updated

        Raises:
            PersistenceFailed: if the write fails
        """
        update_sql = """
        UPDATE captured_photos
        SET extracted_text = ?,
            updated_on = CURRENT_TIMESTAMP
        WHERE id = ?
        """
        with self.lock:
            conn = self._connect()
            try:
                cursor = conn.execute(update_sql, (extracted_text, photo_id))
                conn.commit()
                return cursor.rowcount > 0
            except sqlite3.Error as e:
                log.error("Error updating label for photo %s: %s", photo_id, e)
                conn.rollback()
                raise PersistenceFailed(f"could not update photo {photo_id}: {e}") from e
            finally:
                conn.close()

    def delete_photo(self, photo_id: int) -> bool:
        """Delete a photo. Returns True if it existed."""
        with self.lock:
            conn = self._connect()
            try:
                cursor = conn.execute("DELETE FROM captured_photos WHERE id = ?", (photo_id,))
                conn.commit()
                return cursor.rowcount > 0
            except sqlite3.Error as e:
                log.error("Error deleting photo %s: %s", photo_id, e)
                conn.rollback()
                raise PersistenceFailed(f"could not delete photo {photo_id}: {e}") from e
            finally:
                conn.close()

    def search_photos(self, query: str) -> List[PhotoRecord]:
        """
        Case-insensitive substring search over label, category, address,
        city, state and country. An empty query returns nothing.
        """
        needle = query.strip().lower()
        if not needle:
            return []
        return [
            photo for photo in self.get_all_photos(limit=-1)
            if any(needle in (getattr(photo, name) or '').lower() for name in _SEARCH_FIELDS)
        ]

    def group_by_category(self) -> Dict[str, List[PhotoRecord]]:
        """Photos grouped by category (uncategorized photos go under Other)."""
        groups: Dict[str, List[PhotoRecord]] = {}
        for photo in self.get_all_photos(limit=-1):
            groups.setdefault(photo.category or OTHER, []).append(photo)
        return groups

    def get_statistics(self) -> Dict:
        """Get database statistics."""
        stats_sql = """
        SELECT
            COUNT(*) AS total_photos,
            SUM(CASE WHEN extracted_text IS NOT NULL AND extracted_text != '' THEN 1 ELSE 0 END) AS labeled,
            COUNT(DISTINCT category) AS categories
        FROM captured_photos
        """
        with self.lock:
            conn = self._connect()
            try:
                row = conn.execute(stats_sql).fetchone()
            finally:
                conn.close()
        return {
            'total': row['total_photos'] or 0,
            'labeled': row['labeled'] or 0,
            'categories': row['categories'] or 0,
        }
