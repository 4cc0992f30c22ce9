"""
Data models for fasting sessions and the goal catalog.
"""
