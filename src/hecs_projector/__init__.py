"""HECS-HELP repayment projector."""

__version__ = "0.1.0"
