"""
Survey progression: question catalog, call-step service and webhook router.

Keep import side-effect free.
"""
