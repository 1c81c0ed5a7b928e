"""
Batch grouping — split part ids into supplier-sized request batches.
Version: 1.0.0
"""
from typing import List, Sequence

from supplier_sync.core.constants.sync import PRICING_BATCH_SIZE


def calculate_batch_groups(
    part_ids: Sequence[str], max_batch_size: int = PRICING_BATCH_SIZE,
) -> List[List[str]]:
    """Group part ids into batches of max_batch_size, preserving order."""
    if max_batch_size <= 0:
        raise ValueError("max_batch_size must be positive")
    batches = []
    current_batch = []
    for part_id in part_ids:
        current_batch.append(part_id)
        if len(current_batch) >= max_batch_size:
            batches.append(current_batch)
            current_batch = []
    if current_batch:
        batches.append(current_batch)
    return batches


def dedupe_part_ids(part_ids: Sequence[str]) -> List[str]:
    """Drop blanks and duplicates, keeping first-seen order."""
    seen = set()
    unique = []
    for part_id in part_ids:
        part_id = (part_id or "").strip()
        if part_id and part_id not in seen:
            seen.add(part_id)
            unique.append(part_id)
    return unique
