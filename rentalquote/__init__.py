"""Transaction pricing engine for a rental/booking marketplace."""

__version__ = "0.4.0"
