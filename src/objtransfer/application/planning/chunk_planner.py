import math
from typing import List, Sequence

from objtransfer.domain.entities.upload_part import Part, UploadedPart

DEFAULT_PART_SIZE = 20 * 1024 * 1024


def decompose(ordered_parts: Sequence[UploadedPart], max_parts: int, uploaded_size: int,
              total_size: int, part_size: int = DEFAULT_PART_SIZE) -> List[Part]:
    """
    Plan the parts still missing from a multipart upload.

    Every part but the last has the same size, which is never below
    ``part_size`` and is large enough that the existing and the planned parts
    together stay within ``max_parts``.

    Args:
        ordered_parts: Parts already accepted by the service, ordered by part number
        max_parts: Service ceiling on the number of parts per upload
        uploaded_size: Bytes covered by ``ordered_parts``
        total_size: Size of the local file
        part_size: Configured floor for the part size

    Returns:
        Remaining parts, numbered from ``len(ordered_parts) + 1``
    """
    if uploaded_size < 0 or total_size < 0 or part_size <= 0:
        raise ValueError("sizes must be non-negative and part_size positive")

    left_size = total_size - uploaded_size
    if left_size <= 0:
        return []

    slots = max_parts - len(ordered_parts)
    if slots <= 0:
        raise ValueError(f"upload already holds {len(ordered_parts)} of {max_parts} parts "
                         f"with {left_size} bytes left")

    min_part_size = math.ceil(total_size / slots)
    average_part_size = max(part_size, min_part_size)

    remaining = []
    offset = uploaded_size
    part_number = len(ordered_parts) + 1

    while left_size > 0:
        size = min(left_size, average_part_size)
        remaining.append(Part(part_number=part_number, part_size=size, start=offset))

        left_size -= size
        offset += size
        part_number += 1

    return remaining
