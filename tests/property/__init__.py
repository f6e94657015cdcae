# tests/property/__init__.py
"""Property-based tests for hydropulse.

Test categories:
- Circuit breaker: stateful exploration of closed/open/half-open transitions
- Event queue: bounded FIFO retention under overflow
- Sanitizer: redaction coverage and structure preservation
"""
