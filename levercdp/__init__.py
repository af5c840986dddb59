"""
levercdp: collateralized debt positions with flash-loan leverage.
"""

__version__ = "0.1.0"
