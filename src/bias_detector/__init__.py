"""Gender-bias analysis for medical research articles."""

__version__ = "1.0.0"
