"""
Call-flow webhook service for an automated telephone survey.
"""

__version__ = "0.1.0"
