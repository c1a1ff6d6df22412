"""
WordWise Tests Package
======================
Test suite for the analysis engine, position tracker and HTTP surface.

Run all tests: python3 -m pytest tests/wordwise/ -v
Run specific: python3 -m pytest tests/wordwise/test_tracker.py -v
"""

__version__ = "1.0.0"
