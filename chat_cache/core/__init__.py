"""
Core building blocks: errors, keys, logging.
"""
