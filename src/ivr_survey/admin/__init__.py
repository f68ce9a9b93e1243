"""
Admin view of survey responses.
"""
