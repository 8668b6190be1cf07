"""Parallel upload utilities."""
DEFAULT_WORKERS = 4


def get_worker_count(total_items: int, max_workers: int = DEFAULT_WORKERS) -> int:
    """
    Get the worker pool size for a batch.

    Never more workers than items, never fewer than one.
    """
    return max(1, min(max_workers, total_items))
