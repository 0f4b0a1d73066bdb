import os

from loguru import logger


def get_num_processes() -> int:
    """Get the number of processes to use for parallel processing.

    Returns:
        int: Number of processes to use (total CPUs - 1, minimum 1)
    """
    cpu_count = os.cpu_count()
    if cpu_count is None:
        return 1
    return max(1, cpu_count - 1)


def log_progress(done: int, total: int, last_percent: int, label: str = "Progress") -> int:
    """Log when ``done / total`` crosses a new percent boundary.

    Returns the percent reached, to be passed back on the next call.
    """
    if total <= 0:
        return last_percent
    percent = (100 * done) // total
    if percent > last_percent:
        logger.info(f"{label}: {percent}% ({done}/{total})")
        return percent
    return last_percent
