"""
Test suite for the CRM / EC admin API.

- Unit tests: validators, permissions, shipping maths, token handling
- Service tests: async services against in-memory SQLite
- API tests: the FastAPI app driven through httpx
"""
