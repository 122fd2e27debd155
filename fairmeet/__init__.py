"""
FairMeet: rank places for a group to meet by travel-time fairness
"""

__version__ = '0.1.0'
