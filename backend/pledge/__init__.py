"""Pledge: commitment bets on personal financial goals."""

__version__ = "0.1.0"
__author__ = "Pledge Team"

__all__ = ["__version__", "__author__"]
