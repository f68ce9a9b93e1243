"""
Recording playback through the external voice API.
"""
