"""Protocol parsing, state tracking, connections and SRCP bridge for XDR-F1HD and TEF668X tuners."""

__version__ = "0.1.0"