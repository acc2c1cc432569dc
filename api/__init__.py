"""
Admin HTTP API for duplicate management and quality scoring.
"""
