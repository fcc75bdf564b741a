"""
LLM integration layer.

Responsibilities:
- Manage Groq API configuration and credentials.
- Build prompts from a user context and pre-filtered candidates.
- Call Groq LLM to re-rank candidates and generate explanations.
- Graceful fallback when the LLM is unavailable or returns invalid output.
"""
