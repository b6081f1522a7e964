"""
Utility Functions
=================

This module provides general utility functions used throughout
DualMarchingCubes.

Functions
---------
configure_logging
    Set up logging for the DualMarchingCubes package with customizable
    output format and destinations.
check_volume
    Validate a volume buffer and its dimensions before extraction.
"""

import logging
import math

import numpy as np
import torch

import DualMarchingCubes


def configure_logging(level=logging.INFO, logfile=None):
    """Configure logging for the DualMarchingCubes package.

    Sets up a logger with a standard format and optional file output.
    This is called automatically when DualMarchingCubes is imported.

    Parameters
    ----------
    level : int, default logging.INFO
        Logging level (e.g., logging.DEBUG, logging.INFO, logging.WARNING).
    logfile : str, optional
        Path to log file. If provided, logs are written to both console
        and file. If None, logs only to console.

    Examples
    --------
    >>> from DualMarchingCubes.utils import configure_logging
    >>> import logging
    >>>
    >>> # Set debug level and log to file
    >>> configure_logging(level=logging.DEBUG, logfile='dualmc.log')

    Notes
    -----
    The log format is: "HH:MM:SS message"
    """
    logger = logging.getLogger(DualMarchingCubes.__name__)
    logger.setLevel(level)

    logger_handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s %(message)s", datefmt="%H:%M:%S")
    logger_handler.setFormatter(formatter)
    logger.addHandler(logger_handler)

    if logfile is not None:
        file_logger_handler = logging.FileHandler(logfile)
        file_logger_handler.setFormatter(formatter)
        logger.addHandler(file_logger_handler)


def check_volume(data, dims, index_dtype=torch.int64):
    """Check the preconditions of an extraction call.

    The extraction engine trusts its inputs, callers are expected to reject
    malformed volumes before handing them over.

    Parameters
    ----------
    data : array_like
        Volume samples, x varying fastest.
    dims : sequence of int
        Volume extent ``(dimX, dimY, dimZ)``.
    index_dtype : torch.dtype, default torch.int64
        Integer type used for vertex and cell indices.

    Raises
    ------
    ValueError
        If a dimension is smaller than 2, the number of samples does not
        match the dimensions, or the voxel count exceeds the index range.
    """
    if len(dims) != 3:
        raise ValueError(f"Expected three volume dimensions, got {len(dims)}")
    if any(int(d) < 2 for d in dims):
        raise ValueError(f"Every volume dimension must be at least 2, got {dims}")
    n_voxels = math.prod(int(d) for d in dims)
    if n_voxels > torch.iinfo(index_dtype).max:
        raise ValueError(
            f"Volume with {n_voxels} voxels exceeds the range of {index_dtype}"
        )
    n_samples = data.numel() if torch.is_tensor(data) else np.asarray(data).size
    if n_samples != n_voxels:
        raise ValueError(
            f"Volume holds {n_samples} samples, but dimensions {tuple(dims)} "
            f"require {n_voxels}"
        )
