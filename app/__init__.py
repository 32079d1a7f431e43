"""Shop analytics snapshot service"""

__version__ = "1.0.0"
