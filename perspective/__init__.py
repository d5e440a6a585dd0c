"""
Perspective: adaptive personalization and scoring engine.

Selects the next practice challenge for a learner and computes the
Echo Score, a 0-100 measure of diverse-perspective consumption and
cognitive flexibility.
"""

__version__ = "1.0.0"
