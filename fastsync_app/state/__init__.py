"""
Fasting-state store, its observable stream and the elapsed-time ticker.
"""
