"""hen - split, run and combine EGSnrc simulations in parallel."""

__version__ = "0.1.0"
