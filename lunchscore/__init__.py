"""
Lunch recommendation core.

Responsibilities:
- Aggregate a user's stored preferences and meal history into a context.
- Score restaurants against that context and cap candidate lists.
- Apply hard discovery filters and flag allergen risks.
- Serve the pipeline over a small FastAPI surface.
"""
