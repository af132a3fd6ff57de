"""
Candidate Scoring

Merges detections from every recognition pass into a ranked list of unique
texts. Storefront names tend to be large, bright, near the top-center of the
frame and picked up by several passes; the composite score rewards each of
those signals:

    score = 0.20 * method_count
          + 0.15 * avg_confidence
          + 0.20 * avg_size
          + 0.20 * position_score
          + 0.25 * brightness_score
          + brightness_bonus + size_bonus

method_count is the raw number of detections in the group, so the same pass
reporting a text twice counts the same as two passes agreeing on it.
"""

from typing import Dict, List, Optional, Tuple

from placelens import brightness
from placelens.app_logger import get_logger
from placelens.models import BrightnessGrid, RawDetection, ScoredCandidate

log = get_logger(__name__)

MAX_CANDIDATES = 5

METHOD_WEIGHT = 0.20
CONFIDENCE_WEIGHT = 0.15
SIZE_WEIGHT = 0.20
POSITION_WEIGHT = 0.20
BRIGHTNESS_WEIGHT = 0.25


def group_detections(detections: List[RawDetection]) -> List[List[RawDetection]]:
    """Group by case-insensitive text, groups in order of first appearance."""
    groups: Dict[str, List[RawDetection]] = {}
    for d in detections:
        groups.setdefault(d.text.lower(), []).append(d)
    return list(groups.values())


def position_score(center_x: float, center_y: float) -> float:
    """Favor the upper half of the frame and the horizontal center."""
    vertical = 1.0 if center_y > 0.5 else center_y / 0.5
    horizontal = 1.0 - abs(center_x - 0.5) * 2.0
    return (vertical + horizontal) / 2.0


def brightness_bonus(brightness_score: float) -> float:
    if brightness_score > 0.65:
        return 0.5
    if brightness_score > 0.5:
        return 0.25
    return 0.0


def size_bonus(avg_size: float) -> float:
    if avg_size > 0.02:
        return 0.3
    if avg_size > 0.01:
        return 0.15
    return 0.0


def composite_score(method_count: float, avg_confidence: float, avg_size: float,
                    position: float, brightness_score: float) -> float:
    return (METHOD_WEIGHT * method_count
            + CONFIDENCE_WEIGHT * avg_confidence
            + SIZE_WEIGHT * avg_size
            + POSITION_WEIGHT * position
            + BRIGHTNESS_WEIGHT * brightness_score
            + brightness_bonus(brightness_score)
            + size_bonus(avg_size))


def score_group(occurrences: List[RawDetection], grid: BrightnessGrid) -> ScoredCandidate:
    """Score one group of same-text detections."""
    count = len(occurrences)
    avg_confidence = sum(d.confidence for d in occurrences) / count
    avg_size = sum(d.size for d in occurrences) / count

    first_box = occurrences[0].bounding_box
    bright = brightness.sample_at(first_box, grid)
    position = position_score(first_box.mid_x, first_box.mid_y)

    score = composite_score(float(count), avg_confidence, avg_size, position, bright)
    debug = "conf:%.2f size:%.4f pos:%.2f bright:%.2f" % (avg_confidence, avg_size, position, bright)
    return ScoredCandidate(text=occurrences[0].text, score=score,
                           confidence=avg_confidence, debug=debug)


def score(detections: List[RawDetection],
          grid: BrightnessGrid) -> Tuple[Optional[str], List[ScoredCandidate]]:
    """
    Pick the best label among all detections.

    Args:
        detections: Merged detections from every pass (order matters only for ties)
        grid: Luminance grid of the capture

    Returns:
        (best text or None, up to 5 candidates ranked by descending score)
    """
    if not detections:
        return None, []

    scored = [score_group(group, grid) for group in group_detections(detections)]
    # sorted() is stable: equal scores keep first-appearance order
    ranked = sorted(scored, key=lambda c: c.score, reverse=True)

    for index, candidate in enumerate(ranked[:3]):
        log.debug("Candidate %d: \"%s\" score=%.3f (%s)",
                  index + 1, candidate.text, candidate.score, candidate.debug)

    return ranked[0].text, ranked[:MAX_CANDIDATES]
