"""TotoAI: football match prediction and betting ticket variant engine."""

__version__ = "0.1.0"
