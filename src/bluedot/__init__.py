"""BlueDot launcher: keeps the bluedot-cli binary current and runs it."""

__version__ = "0.1.0"
