"""
Discovery filtering for the browse/search experience.

Hard constraints from user preferences remove candidates; allergen
matches are flagged, never removed.
"""
