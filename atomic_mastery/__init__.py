"""
Atomic Mastery - per-element mastery tracking for lessons.

Tracks a learner's mastery of each atom of a lesson with a spaced-repetition
state machine, anti-gaming guards and weighted lesson aggregation.
"""

__version__ = "1.0.0"
