"""worklog — roll daily work entries up into pattern analyses and portfolio cards."""

__version__ = "0.1.0"
