"""
Presentation-side consumers of the fasting-state core.
"""
