import logging
import time
from contextlib import contextmanager
from typing import Optional, Union

import numpy as np


def make_logger(name: str = "acsfm", level: Union[int, str] = logging.INFO) -> logging.Logger:
    if isinstance(level, str):
        level = getattr(logging, level.upper())
    logger = logging.getLogger(name)
    if not logger.handlers:
        h = logging.StreamHandler()
        fmt = logging.Formatter("[%(levelname)s] %(message)s")
        h.setFormatter(fmt)
        logger.addHandler(h)
    logger.setLevel(level)
    return logger


@contextmanager
def timed(logger: Optional[logging.Logger], msg: str):
    t0 = time.perf_counter()
    if logger:
        logger.info(f"{msg} ...")
    yield
    dt = time.perf_counter() - t0
    if logger:
        logger.info(f"{msg} done in {dt:.2f}s")


def log_matrix(logger: Optional[logging.Logger], name: str, M: np.ndarray, precision: int = 6) -> None:
    """Log a small matrix one row per line, e.g. the recovered R and t."""
    if not logger:
        return
    M = np.atleast_2d(np.asarray(M, dtype=np.float64))
    logger.info(f"{name} =")
    for row in M:
        logger.info("  " + " ".join(f"{v: .{precision}f}" for v in row))
