"""
AIQA - AI-assisted browser test execution engine.
"""

__version__ = "0.1.0"
