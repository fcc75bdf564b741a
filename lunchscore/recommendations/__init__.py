"""
Recommendation request path.

Responsibilities:
- Build (or reuse) the user's context.
- Rank and cap the candidate restaurants by compatibility.
- Hand the shortlist to the LLM for re-ranking and explanations.
- Return structured recommendations ready for API serialisation.
"""
