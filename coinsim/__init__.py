"""Coin Trade Simulator - simulated buy/sell trades against live coin prices."""

__version__ = "1.0.0"
