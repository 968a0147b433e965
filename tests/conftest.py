# BizDesk Live-Server Test Configuration and Fixtures
#
# This module provides:
# - Test server lifecycle (ephemeral SQLite file per run, `flask run` subprocess)
# - Account fixtures (two unrelated business owners)
# - Authentication helpers
# - Failure message formatting

import os
import sys
import time
import tempfile
import subprocess
import shutil
from pathlib import Path
from typing import Generator, Optional, Dict, Any
from dataclasses import dataclass

import pytest
import httpx

REPO_ROOT = Path(__file__).parent.parent
BACKEND_DIR = REPO_ROOT / "backend"

TEST_PASSWORD = "TestPass123!"
OWNER_EMAIL = "owner@alpha.test"
OTHER_EMAIL = "owner@beta.test"


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class TestConfig:
    """Test configuration with environment variable overrides."""
    backend_base_url: str = os.environ.get("TEST_BACKEND_URL", "http://127.0.0.1:5001")

    # Timeouts
    request_timeout: float = float(os.environ.get("TEST_REQUEST_TIMEOUT", "30"))
    server_startup_timeout: float = float(os.environ.get("TEST_SERVER_STARTUP_TIMEOUT", "30"))


# =============================================================================
# FAILURE MESSAGE HELPER
# =============================================================================

# Likely causes by status code, shown in failure reports
STATUS_HINTS = {
    400: "Payload rejected by validation (see 'details' in the body)",
    401: "Missing, expired, idle-revoked or logged-out bearer token",
    404: "Wrong id, already deleted, or the row belongs to another account",
    409: "Duplicate SKU, product still referenced, or restock order not pending",
    500: "Unhandled server error; the backend log has the traceback",
}


class TestFailure(Exception):
    """
    Assertion error for live-server tests that reads like a bug report:
    scenario, expected vs actual, likely cause, where to look, and the
    response that triggered it.
    """

    def __init__(
        self,
        scenario: str,
        expected: str,
        actual: str,
        likely_cause: str,
        code_location: str,
        response: Optional[httpx.Response] = None,
        extra_context: Optional[Dict[str, Any]] = None
    ):
        self.scenario = scenario
        self.response = response
        sections = [
            [("SCENARIO", scenario)],
            [("EXPECTED", expected), ("ACTUAL", actual)],
            [("LIKELY CAUSE", likely_cause), ("CODE LOCATION", code_location)],
        ]
        if response is not None:
            sections.append([
                ("HTTP", f"{response.request.method} {response.request.url} -> {response.status_code}"),
                ("BODY", response.text[:1000]),
            ])
        if extra_context:
            sections.append([(key, value) for key, value in extra_context.items()])
        super().__init__(_render_report(sections))


def _render_report(sections) -> str:
    rule = "-" * 80
    out = ["", "=" * 80, "LIVE TEST FAILURE"]
    for section in sections:
        out.append(rule)
        out.extend(f"{label}: {value}" for label, value in section)
    out.append("=" * 80)
    return "\n".join(out)


def likely_cause(response: httpx.Response) -> str:
    return STATUS_HINTS.get(response.status_code, f"Unexpected status code {response.status_code}")


def assert_response(
    response: httpx.Response,
    expected_status: int,
    scenario: str,
    code_location: str,
    expected_body_contains: Optional[str] = None
):
    """Fail with a TestFailure report unless status (and optionally body text) match."""
    if response.status_code != expected_status:
        actual, cause = f"HTTP {response.status_code}", likely_cause(response)
    elif expected_body_contains and expected_body_contains not in response.text:
        actual, cause = "body without the expected text", "Response shape changed or wrong endpoint"
    else:
        return

    expected = f"HTTP {expected_status}"
    if expected_body_contains:
        expected += f" with body containing {expected_body_contains!r}"
    raise TestFailure(
        scenario=scenario,
        expected=expected,
        actual=actual,
        likely_cause=cause,
        code_location=code_location,
        response=response,
    )


# =============================================================================
# HTTP CLIENT WITH AUTH HELPERS
# =============================================================================

class APIClient:
    """
    HTTP client wrapper with authentication and convenience methods.
    """

    def __init__(self, base_url: str, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(timeout=timeout)
        self.token: Optional[str] = None
        self.current_user: Optional[Dict] = None

    def _headers(self) -> Dict:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def get(self, path: str, params: Optional[Dict] = None, **kwargs) -> httpx.Response:
        return self.client.get(f"{self.base_url}{path}", headers=self._headers(), params=params, **kwargs)

    def post(self, path: str, json: Optional[Dict] = None, **kwargs) -> httpx.Response:
        return self.client.post(f"{self.base_url}{path}", headers=self._headers(), json=json, **kwargs)

    def put(self, path: str, json: Optional[Dict] = None, **kwargs) -> httpx.Response:
        return self.client.put(f"{self.base_url}{path}", headers=self._headers(), json=json, **kwargs)

    def delete(self, path: str, **kwargs) -> httpx.Response:
        return self.client.delete(f"{self.base_url}{path}", headers=self._headers(), **kwargs)

    def register(self, email: str, password: str, business_name: Optional[str] = None) -> httpx.Response:
        return self.post("/api/auth/register", json={
            "email": email,
            "password": password,
            "business_name": business_name,
        })

    def login(self, email: str, password: str) -> bool:
        """Authenticate and store token."""
        response = self.post("/api/auth/login", json={"email": email, "password": password})
        if response.status_code == 200:
            data = response.json()
            self.token = data.get("token")
            self.current_user = data.get("user")
            return True
        return False

    def logout(self) -> bool:
        if not self.token:
            return True
        response = self.post("/api/auth/logout")
        if response.status_code == 200:
            self.token = None
            self.current_user = None
            return True
        return False

    def close(self):
        self.client.close()


# =============================================================================
# SERVER MANAGEMENT
# =============================================================================

class ServerManager:
    """
    Manages Flask backend server lifecycle for tests.
    """

    def __init__(self, config: TestConfig):
        self.config = config
        self.process: Optional[subprocess.Popen] = None
        self.db_file: Optional[Path] = None

    def _env(self) -> Dict[str, str]:
        env = os.environ.copy()
        env["DATABASE_URL"] = f"sqlite:///{self.db_file}"
        env["FLASK_APP"] = "wsgi.py"
        return env

    def start(self) -> bool:
        """Create the schema in a fresh database file, then start the server."""
        temp_dir = tempfile.mkdtemp(prefix="bizdesk_test_")
        self.db_file = Path(temp_dir) / "test_bizdesk.sqlite3"

        subprocess.run(
            [sys.executable, "-m", "flask", "system", "init-db"],
            cwd=str(BACKEND_DIR),
            env=self._env(),
            check=True,
            capture_output=True,
        )

        self.process = subprocess.Popen(
            [sys.executable, "-m", "flask", "run", "--port", "5001"],
            cwd=str(BACKEND_DIR),
            env=self._env(),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )

        return self._wait_for_server()

    def _wait_for_server(self) -> bool:
        start_time = time.time()
        while time.time() - start_time < self.config.server_startup_timeout:
            try:
                response = httpx.get(f"{self.config.backend_base_url}/api/health", timeout=2.0)
                if response.status_code in (200, 503):  # 503 means degraded but running
                    return True
            except (httpx.ConnectError, httpx.TimeoutException):
                pass
            time.sleep(0.5)
        return False

    def stop(self):
        if self.process:
            self.process.terminate()
            try:
                self.process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self.process.kill()
            self.process = None

        if self.db_file and self.db_file.parent.exists():
            shutil.rmtree(self.db_file.parent, ignore_errors=True)

    def seed_accounts(self, client: APIClient):
        """Register the two test owners through the public API."""
        for email, business in ((OWNER_EMAIL, "Alpha Goods"), (OTHER_EMAIL, "Beta Traders")):
            response = client.register(email, TEST_PASSWORD, business)
            if response.status_code not in (201, 409):
                raise TestFailure(
                    scenario=f"Register seed account {email}",
                    expected="HTTP 201 (or 409 when already seeded)",
                    actual=f"HTTP {response.status_code}",
                    likely_cause=likely_cause(response),
                    code_location="backend/bizdesk/routes/auth.py:register_route",
                    response=response
                )


# =============================================================================
# PYTEST FIXTURES
# =============================================================================

@pytest.fixture(scope="session")
def test_config() -> TestConfig:
    return TestConfig()


@pytest.fixture(scope="session")
def server_manager(test_config: TestConfig) -> Generator[ServerManager, None, None]:
    """
    Manage test server lifecycle.
    Server is started once per test session.
    """
    manager = ServerManager(test_config)
    # For CI/external server mode, don't manage server
    if os.environ.get("TEST_EXTERNAL_SERVER"):
        yield manager
    else:
        if not manager.start():
            pytest.fail("Failed to start test server")
        yield manager
        manager.stop()


@pytest.fixture(scope="session")
def api_client(test_config: TestConfig, server_manager: ServerManager) -> Generator[APIClient, None, None]:
    client = APIClient(test_config.backend_base_url, timeout=test_config.request_timeout)
    server_manager.seed_accounts(client)
    yield client
    client.close()


@pytest.fixture
def client(api_client: APIClient) -> APIClient:
    """Shared client with any previous auth state cleared."""
    api_client.token = None
    api_client.current_user = None
    return api_client


@pytest.fixture
def owner_client(client: APIClient) -> APIClient:
    if not client.login(OWNER_EMAIL, TEST_PASSWORD):
        pytest.fail(f"Failed to login as {OWNER_EMAIL}")
    return client


@pytest.fixture
def other_client(api_client: APIClient, test_config: TestConfig) -> Generator[APIClient, None, None]:
    """A second, unrelated account on its own connection."""
    other = APIClient(test_config.backend_base_url, timeout=test_config.request_timeout)
    if not other.login(OTHER_EMAIL, TEST_PASSWORD):
        pytest.fail(f"Failed to login as {OTHER_EMAIL}")
    yield other
    other.close()


# =============================================================================
# TEST MARKERS
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "smoke: Quick smoke tests for critical paths")
    config.addinivalue_line("markers", "sales: Sales workflow tests")
    config.addinivalue_line("markers", "restocks: Restock order tests")
    config.addinivalue_line("markers", "tenant: Per-account isolation tests")
