"""TutorHub wallet ledger and booking core."""

__version__ = "0.1.0"
