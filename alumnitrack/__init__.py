"""
AlumniTrack - terminal client for the college job board and alumni tracker
"""

__version__ = "1.0.0"
