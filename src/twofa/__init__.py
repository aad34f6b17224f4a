"""twofa: two-factor authentication codes on the command line."""

__version__ = "0.1.0"
