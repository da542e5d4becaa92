"""Test package for LabLens.

Unit tests cover each component in isolation; integration tests drive the
HTTP API end to end with a fake generative service in place of Gemini.

Structure:
    - unit/: Individual function and class tests
    - integration/: API workflow tests

Leverages pytest with pytest-asyncio and pytest-check for soft assertions.
"""
