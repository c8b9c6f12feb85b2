"""
Pytest test suite for the Royale meal subscription backend.

Test categories:
- Unit tests: schedule/refund rules and services against in-memory SQLite
- API tests: full FastAPI app through httpx with Stripe in simulation mode
- Integration tests: ORM models and constraints
"""
