"""
Non-maximum suppression over decoded detections.
"""

from typing import List, Sequence

from .config import IOU_THRESHOLD
from .entities import BoundingBox, Detection
from .logger import log


def calculate_iou(b1: BoundingBox, b2: BoundingBox) -> float:
    """Intersection over union of two boxes. 0 when they do not overlap."""
    x1 = max(b1.x1, b2.x1)
    y1 = max(b1.y1, b2.y1)
    x2 = min(b1.x2, b2.x2)
    y2 = min(b1.y2, b2.y2)

    if x2 <= x1 or y2 <= y1:
        return 0.0

    intersection = (x2 - x1) * (y2 - y1)
    area1 = (b1.x2 - b1.x1) * (b1.y2 - b1.y1)
    area2 = (b2.x2 - b2.x1) * (b2.y2 - b2.y1)
    union = area1 + area2 - intersection

    if union <= 0:
        return 0.0

    return intersection / union


def apply_nms(detections: Sequence[Detection], iou_threshold: float = IOU_THRESHOLD) -> List[Detection]:
    """
    Greedy NMS, highest confidence first.

    Candidates are stably sorted by confidence (equal confidences keep
    their input order). Each kept candidate suppresses every later,
    not yet suppressed candidate whose IoU with it exceeds the threshold.
    Suppressed candidates are never reconsidered.
    """
    if not detections:
        return []

    ordered = sorted(detections, key=lambda d: d.confidence, reverse=True)
    suppressed = [False] * len(ordered)
    keep = []

    for i, current in enumerate(ordered):
        if suppressed[i]:
            continue
        keep.append(current)

        for j in range(i + 1, len(ordered)):
            if suppressed[j]:
                continue
            if calculate_iou(current.bbox, ordered[j].bbox) > iou_threshold:
                suppressed[j] = True

    log.debug('pipeline:nms', 'Suppression complete',
              candidates=len(ordered), kept=len(keep), iou_threshold=iou_threshold)

    return keep
