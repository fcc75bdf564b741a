"""
Compatibility scoring.

Responsibilities:
- Compute the six weighted sub-scores of a restaurant against a context.
- Annotate candidates with their distance from the user.
- Pre-filter large candidate lists to the top N before LLM calls.
"""
