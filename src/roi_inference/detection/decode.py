"""
Decoding of raw detection output.

All stride arithmetic over the engine's flat output buffer lives here. The
buffer is batch-major: region N owns records
[N * max_proposal_count, (N + 1) * max_proposal_count), each `object_size`
floats wide:

    [image_id, class_id, confidence, x_min, y_min, x_max, y_max, ...]

Box corners are normalized to [0, 1] relative to the network input.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from ..errors import DecodeError
from ..models.descriptor import ObjectDetectionModel
from ..models.detection import BoundingBox, ObjectDetectionResult
from ..models.region import Region

# Field offsets within one record
IMAGE_ID, CLASS_ID, CONFIDENCE, X_MIN, Y_MIN, X_MAX, Y_MAX = range(7)


@dataclass(frozen=True)
class RawDetection:
    """One decoded output record, still in normalized model space."""
    slot: int
    class_id: int
    confidence: float
    x_min: float
    y_min: float
    x_max: float
    y_max: float


def split_records(raw: np.ndarray, model: ObjectDetectionModel, batch: int) -> np.ndarray:
    """
    Reshape a raw buffer into (batch, max_proposal_count, object_size).

    Raises:
        DecodeError: If the buffer size does not match `batch` regions.
    """
    flat = np.asarray(raw, dtype=np.float32).reshape(-1)
    if flat.size % model.object_size != 0:
        raise DecodeError(
            f"Raw output of {flat.size} floats is not a multiple of object_size {model.object_size}"
        )
    records = flat.size // model.object_size
    expected = batch * model.max_proposal_count
    if records != expected:
        raise DecodeError(
            f"Raw output holds {records} records, expected {expected} "
            f"({batch} regions x {model.max_proposal_count} proposals)"
        )
    return flat.reshape(batch, model.max_proposal_count, model.object_size)


def decode_slot(
    raw: np.ndarray,
    slot: int,
    model: ObjectDetectionModel,
    batch: int,
) -> List[RawDetection]:
    """
    Decode the records belonging to one batch slot.

    A negative image_id ends the slot's detections; the rest of its block is
    padding. A non-negative image_id naming another slot is a decode error.
    """
    if not 0 <= slot < batch:
        raise IndexError(f"Batch slot {slot} out of range for batch of {batch}")
    return _decode_block(split_records(raw, model, batch)[slot], slot, model)


def _decode_block(block: np.ndarray, slot: int, model: ObjectDetectionModel) -> List[RawDetection]:
    candidates: List[RawDetection] = []
    for index, record in enumerate(block):
        image_id = int(record[IMAGE_ID])
        if image_id < 0:
            break
        if image_id != slot:
            raise DecodeError(
                f"Record {slot * model.max_proposal_count + index} belongs to slot {slot} "
                f"but reports image_id {image_id}"
            )
        candidates.append(
            RawDetection(
                slot=slot,
                class_id=int(record[CLASS_ID]),
                confidence=float(record[CONFIDENCE]),
                x_min=float(record[X_MIN]),
                y_min=float(record[Y_MIN]),
                x_max=float(record[X_MAX]),
                y_max=float(record[Y_MAX]),
            )
        )
    return candidates


def correlate(
    candidate: RawDetection,
    region: Region,
    model: ObjectDetectionModel,
    constrain: bool = True,
) -> ObjectDetectionResult:
    """
    Map a normalized detection onto the frame its region was cut from.

    The box is scaled into the region's pixel space and translated by the
    region's frame offset. With constrain=True it is clipped to the region's
    frame rectangle. A box lying wholly outside the region is kept as a
    zero-size box on the region's border.
    """
    location = BoundingBox.from_normalized(
        candidate.x_min,
        candidate.y_min,
        candidate.x_max,
        candidate.y_max,
        region.width,
        region.height,
    ).translate(region.offset.x1, region.offset.y1)

    if constrain:
        location = location.intersect(region.offset)

    return ObjectDetectionResult(
        location=location,
        label=model.label_for(candidate.class_id),
        confidence=candidate.confidence,
        class_id=candidate.class_id,
        region=candidate.slot,
    )


def decode_batch(
    raw: np.ndarray,
    model: ObjectDetectionModel,
    regions: Sequence[Region],
    threshold: float = 0.0,
    constrain: bool = True,
) -> List[ObjectDetectionResult]:
    """
    Decode, filter and correlate a whole batch.

    Detections with confidence below `threshold` are dropped; every other
    detection yields exactly one result. Results come out ordered by region,
    then by record order within the region.
    """
    # Split once so a bad buffer fails before any slot decodes
    blocks = split_records(raw, model, len(regions))

    results: List[ObjectDetectionResult] = []
    for slot, region in enumerate(regions):
        for candidate in _decode_block(blocks[slot], slot, model):
            if candidate.confidence < threshold:
                continue
            results.append(correlate(candidate, region, model, constrain=constrain))
    return results
