# BizDesk live-server test suite
#
# This package contains:
# - API workflow tests against a running backend (pytest + httpx)
# - Stress/load tests (Locust)
#
# Unit and route tests live in backend/tests and need no server.
# Run with: python -m pytest tests/api
