"""
OCR Analysis Logger

Records every recognition attempt (what was read, which pass produced the
winner, how bright the scene was, how long it took) so that the scoring
weights can be tuned against real user corrections. Only created when
debug_analytics is enabled in the pipeline config.
"""

import hashlib
import json
import sqlite3
import threading
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

import cv2
import numpy as np

from placelens import brightness
from placelens.app_logger import get_logger
from placelens.models import RecognitionResult
from placelens.multipass import summarize_by_method

log = get_logger(__name__)

THUMBNAIL_MAX_WIDTH = 800
THUMBNAIL_QUALITY = 70
BRIGHT_TEXT_THRESHOLD = 0.6


@dataclass
class OCRAttempt:
    image_hash: str
    image_path: Optional[str]
    brightness_avg: float
    time_of_day: str
    selected_text: Optional[str]
    selected_score: Optional[float]
    selected_confidence: Optional[float]
    selected_method: Optional[str]
    selected_position_x: Optional[float]
    selected_position_y: Optional[float]
    selected_size: Optional[float]
    all_candidates: str
    all_methods_summary: str
    has_bright_text: bool
    text_position: str
    processing_time_ms: int
    num_candidates: int
    num_methods_detected: int
    console_log: str
    dominant_color: Optional[str] = None


def hash_image(image: np.ndarray) -> str:
    """Stable short hash of an image's JPEG encoding."""
    ok, encoded = cv2.imencode('.jpg', image)
    if not ok:
        raise ValueError("Could not encode image for hashing")
    return hashlib.sha256(encoded.tobytes()).hexdigest()[:32]


def time_of_day(hour: Optional[int] = None) -> str:
    if hour is None:
        hour = datetime.now().hour
    if 6 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 20:
        return "evening"
    return "night"


def console_summary(recognition: RecognitionResult) -> str:
    lines = [f"{method}: {', '.join(texts)}"
             for method, texts in summarize_by_method(recognition.detections).items()]
    lines.append(f"Selected: {recognition.best_text}")
    return "\n".join(lines)


def build_attempt(recognition: RecognitionResult, image_hash: str,
                  image_path: Optional[str] = None, hour: Optional[int] = None) -> OCRAttempt:
    """
    Build the analytics record for one recognition.

    The selected method, position and size come from the first detection
    whose text matches the winning text (case-insensitive).
    """
    best = recognition.candidates[0] if recognition.candidates else None

    match = None
    if recognition.best_text is not None:
        wanted = recognition.best_text.lower()
        match = next((d for d in recognition.detections if d.text.lower() == wanted), None)

    counts: Dict[str, int] = {}
    for d in recognition.detections:
        counts[d.origin_method.value] = counts.get(d.origin_method.value, 0) + 1
    methods_summary = [{'method': m, 'detections': n} for m, n in sorted(counts.items())]

    avg = brightness.average(recognition.brightness_grid)
    position_y = match.bounding_box.mid_y if match else None

    return OCRAttempt(
        image_hash=image_hash,
        image_path=image_path,
        brightness_avg=avg,
        time_of_day=time_of_day(hour),
        selected_text=recognition.best_text,
        selected_score=best.score if best else None,
        selected_confidence=best.confidence if best else None,
        selected_method=match.origin_method.value if match else None,
        selected_position_x=match.bounding_box.mid_x if match else None,
        selected_position_y=position_y,
        selected_size=match.size if match else None,
        all_candidates=json.dumps([c.to_dict() for c in recognition.candidates]),
        all_methods_summary=json.dumps(methods_summary),
        has_bright_text=avg > BRIGHT_TEXT_THRESHOLD,
        text_position="upper" if (position_y or 0.0) > 0.5 else "lower",
        processing_time_ms=recognition.processing_time_ms,
        num_candidates=len(recognition.candidates),
        num_methods_detected=len(counts),
        console_log=console_summary(recognition),
    )


class OCRLogger:
    """
    SQLite log of recognition attempts and user corrections.
    """

    def __init__(self, db_path: str = "data/ocr_analysis.db", images_dir: str = "data/ocr_images"):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.images_dir = Path(images_dir)
        self.images_dir.mkdir(parents=True, exist_ok=True)
        self.lock = threading.Lock()

        self._initialize_database()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    def _initialize_database(self):
        create_table_sql = """
        CREATE TABLE IF NOT EXISTS ocr_attempts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,

            image_hash TEXT,
            image_path TEXT,
            brightness_avg REAL,
            time_of_day TEXT,

            selected_text TEXT,
            selected_score REAL,
            selected_confidence REAL,
            selected_method TEXT,
            selected_position_x REAL,
            selected_position_y REAL,
            selected_size REAL,

            corrected_text TEXT,
            was_correct INTEGER DEFAULT NULL,
            correction_timestamp DATETIME,

            all_candidates TEXT,
            all_methods_summary TEXT,

            has_bright_text INTEGER,
            dominant_color TEXT,
            text_position TEXT,

            processing_time_ms INTEGER,
            num_candidates INTEGER,
            num_methods_detected INTEGER,

            console_log TEXT
        );

        CREATE INDEX IF NOT EXISTS idx_was_correct ON ocr_attempts(was_correct);
        CREATE INDEX IF NOT EXISTS idx_selected_method ON ocr_attempts(selected_method);
        CREATE INDEX IF NOT EXISTS idx_timestamp ON ocr_attempts(timestamp);
        CREATE INDEX IF NOT EXISTS idx_selected_text ON ocr_attempts(selected_text);
        """
        with self.lock:
            conn = self._connect()
            try:
                conn.executescript(create_table_sql)
                conn.commit()
                log.info("OCR analysis database ready: %s", self.db_path)
            finally:
                conn.close()

    def save_image(self, image: np.ndarray, image_hash: str) -> Optional[str]:
        """
        Save a JPEG thumbnail (at most 800 px wide) named after the image hash.

        Returns:
            File path, or None if the image could not be written
        """
        h, w = image.shape[:2]
        if w > THUMBNAIL_MAX_WIDTH:
            scale = THUMBNAIL_MAX_WIDTH / float(w)
            image = cv2.resize(image, (THUMBNAIL_MAX_WIDTH, max(1, int(round(h * scale)))),
                               interpolation=cv2.INTER_AREA)

        path = self.images_dir / f"{image_hash}.jpg"
        if not cv2.imwrite(str(path), image, [int(cv2.IMWRITE_JPEG_QUALITY), THUMBNAIL_QUALITY]):
            log.warning("Failed to save analysis image %s", path)
            return None
        log.debug("Analysis image saved: %s (%dKB)", path.name, path.stat().st_size // 1024)
        return str(path)

    def log_attempt(self, attempt: OCRAttempt) -> int:
        """Insert one attempt. Returns its row id."""
        row = asdict(attempt)
        row['has_bright_text'] = 1 if attempt.has_bright_text else 0
        columns = ", ".join(row.keys())
        placeholders = ", ".join("?" for _ in row)

        with self.lock:
            conn = self._connect()
            try:
                cursor = conn.execute(
                    f"INSERT INTO ocr_attempts ({columns}) VALUES ({placeholders})",
                    tuple(row.values()),
                )
                conn.commit()
                attempt_id = cursor.lastrowid
            except sqlite3.Error:
                conn.rollback()
                raise
            finally:
                conn.close()

        log.debug("OCR attempt %d logged (selected=%r)", attempt_id, attempt.selected_text)
        return attempt_id

    def record(self, image: np.ndarray, recognition: RecognitionResult) -> int:
        """Hash, thumbnail and log one recognition."""
        image_hash = hash_image(image)
        image_path = self.save_image(image, image_hash)
        return self.log_attempt(build_attempt(recognition, image_hash, image_path))

    def log_correction(self, original_text: str, corrected_text: str) -> bool:
        """
        Attach a user correction to the newest attempt that selected original_text.

        Returns:
            True if an attempt was updated
        """
        update_sql = """
        UPDATE ocr_attempts
        SET corrected_text = ?,
            was_correct = ?,
            correction_timestamp = CURRENT_TIMESTAMP
        WHERE id = (
            SELECT id FROM ocr_attempts
            WHERE selected_text = ?
            ORDER BY timestamp DESC, id DESC
            LIMIT 1
        )
        """
        was_correct = 1 if original_text.lower() == corrected_text.lower() else 0

        with self.lock:
            conn = self._connect()
            try:
                cursor = conn.execute(update_sql, (corrected_text, was_correct, original_text))
                conn.commit()
                updated = cursor.rowcount > 0
            except sqlite3.Error:
                conn.rollback()
                raise
            finally:
                conn.close()

        if updated:
            log.info("Correction logged: %r -> %r", original_text, corrected_text)
        return updated

    def get_accuracy_stats(self) -> Dict:
        query = """
        SELECT
            COUNT(*) AS total,
            SUM(CASE WHEN was_correct = 1 THEN 1 ELSE 0 END) AS correct
        FROM ocr_attempts
        WHERE was_correct IS NOT NULL
        """
        with self.lock:
            conn = self._connect()
            try:
                row = conn.execute(query).fetchone()
            finally:
                conn.close()

        total = row['total'] or 0
        correct = row['correct'] or 0
        return {
            'total': total,
            'correct': correct,
            'accuracy': (correct / total * 100.0) if total else 0.0,
        }

    def get_method_performance(self) -> List[Dict]:
        """Success rate per winning pass, best first."""
        query = """
        SELECT
            selected_method,
            COUNT(*) AS total,
            SUM(CASE WHEN was_correct = 1 THEN 1 ELSE 0 END) AS correct
        FROM ocr_attempts
        WHERE was_correct IS NOT NULL AND selected_method IS NOT NULL
        GROUP BY selected_method
        ORDER BY correct DESC, selected_method
        """
        with self.lock:
            conn = self._connect()
            try:
                rows = conn.execute(query).fetchall()
            finally:
                conn.close()

        return [
            {
                'method': row['selected_method'],
                'success_rate': (row['correct'] / row['total'] * 100.0) if row['total'] else 0.0,
                'count': row['total'],
            }
            for row in rows
        ]

    def export_all(self, limit: int = 100) -> str:
        """Newest attempts as a JSON array."""
        with self.lock:
            conn = self._connect()
            try:
                rows = conn.execute(
                    "SELECT * FROM ocr_attempts ORDER BY timestamp DESC, id DESC LIMIT ?", (limit,)
                ).fetchall()
            finally:
                conn.close()
        return json.dumps([dict(row) for row in rows], indent=2)
