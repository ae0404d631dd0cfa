"""Version information for kit-composer."""

__version__ = "0.1.0"
