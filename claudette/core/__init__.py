"""
Core modules for claudette.

This package contains record extraction, deduplication, the streaming
reader, session segmentation, aggregation and burn rate calculation.
"""
