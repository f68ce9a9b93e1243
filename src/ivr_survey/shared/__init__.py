"""
Shared infrastructure: logging, database wiring and domain exceptions.
"""
