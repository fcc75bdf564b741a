"""
User context aggregation.

Responsibilities:
- Read stored preferences and meal history for a user.
- Derive dietary, budget, location, temporal and behavioural state.
- Produce immutable, time-stamped context snapshots.
- Cache fresh snapshots for reuse within the freshness window.
"""
