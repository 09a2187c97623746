from typing import Iterable, List, Tuple

Batch = Tuple[str, ...]


def group_texts_by_length(
    texts: Iterable[str], max_batch_chars: int, max_batch_items: int
) -> List[Batch]:
    """
    Partition texts into request batches, shortest texts first.

    Ties in length are ordered by text so grouping is deterministic. A text
    longer than `max_batch_chars` gets a batch of its own.
    """
    if max_batch_chars <= 0 or max_batch_items <= 0:
        raise ValueError("max_batch_chars and max_batch_items must be > 0")

    ordered = sorted(set(texts), key=lambda text: (len(text), text))
    batches: List[Batch] = []
    current: List[str] = []
    current_chars = 0

    for text in ordered:
        if current and (
            current_chars + len(text) > max_batch_chars
            or len(current) >= max_batch_items
        ):
            batches.append(tuple(current))
            current = []
            current_chars = 0
        current.append(text)
        current_chars += len(text)

    if current:
        batches.append(tuple(current))
    return batches


def batch_chars(batch: Batch) -> int:
    return sum(len(text) for text in batch)
