"""Integration tests for the HTTP API.

Run the FastAPI app through ASGITransport with the orchestrator dependency
overridden to use a fake generative service.
"""
