# greenstore API Test Suite - Shared Configuration and Fixtures
#
# This module provides:
# - An isolated application per run on an ephemeral SQLite file
# - Role-scoped HTTP clients (httpx, routed in-process through WSGI)
# - A data factory for catalog rows and approvals
# - Failure message formatting

import itertools
import os
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Generator, Optional

import pytest
import httpx

from greenstore import create_app
from greenstore.config import Config
from greenstore.extensions import db
from greenstore.models import Product
from greenstore.services import session_service, settings_service
from greenstore.services.auth_service import create_user


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class SuiteConfig:
    """Suite configuration with environment variable overrides."""
    base_url: str = os.environ.get("TEST_BACKEND_URL", "http://greenstore.test")
    request_timeout: float = float(os.environ.get("TEST_REQUEST_TIMEOUT", "30"))
    password: str = "Password123!"


# =============================================================================
# FAILURE MESSAGE HELPER
# =============================================================================

class TestFailure(Exception):
    """
    Custom exception with detailed, human-readable failure messages.

    Structure:
    1. Scenario: What was being tested
    2. Expected: What should have happened
    3. Actual: What actually happened
    4. Likely Cause: Most probable reason for failure
    5. Code Location: Where to look in the codebase
    """
    __test__ = False

    def __init__(
        self,
        scenario: str,
        expected: str,
        actual: str,
        likely_cause: str,
        code_location: str,
        response: Optional[httpx.Response] = None,
    ):
        self.response = response
        lines = [
            "",
            "=" * 80,
            "TEST FAILURE DETAILS",
            "=" * 80,
            f"SCENARIO: {scenario}",
            "-" * 80,
            f"EXPECTED: {expected}",
            f"ACTUAL: {actual}",
            "-" * 80,
            f"LIKELY CAUSE: {likely_cause}",
            f"CODE LOCATION: {code_location}",
        ]
        if response is not None:
            lines.extend([
                "-" * 80,
                f"HTTP STATUS: {response.status_code}",
                f"REQUEST ID: {response.headers.get('X-Request-ID')}",
                f"RESPONSE BODY: {response.text[:1000]}",
            ])
        lines.append("=" * 80)
        super().__init__("\n".join(lines))


def assert_response(
    response: httpx.Response,
    expected_status: int,
    scenario: str,
    code_location: str,
    expected_error_code: Optional[str] = None,
):
    """
    Assert HTTP status and, for failures, the error envelope code.
    Raises TestFailure with detailed message on failure.
    """
    if response.status_code != expected_status:
        raise TestFailure(
            scenario=scenario,
            expected=f"HTTP {expected_status}",
            actual=f"HTTP {response.status_code}",
            likely_cause=_infer_cause(response),
            code_location=code_location,
            response=response,
        )

    if expected_error_code is not None:
        actual_code = (response.json().get("error") or {}).get("code")
        if actual_code != expected_error_code:
            raise TestFailure(
                scenario=scenario,
                expected=f"error.code = {expected_error_code}",
                actual=f"error.code = {actual_code}",
                likely_cause="Error mapped to the wrong AppError subclass",
                code_location=code_location,
                response=response,
            )


def _infer_cause(response: httpx.Response) -> str:
    """Infer likely cause from response status/body."""
    if response.status_code == 401:
        return "Session or approval token missing/invalid"
    elif response.status_code == 403:
        return "Role too low, approval invalid/expired, or policy ceiling exceeded"
    elif response.status_code == 404:
        return "Resource not found - wrong ID"
    elif response.status_code == 400:
        return "Invalid request, validation failure, or business rule (stock/discount)"
    elif response.status_code == 500:
        return "Server error - check backend logs for the request id"
    else:
        return f"Unexpected status code {response.status_code}"


# =============================================================================
# HTTP CLIENT WITH AUTH HELPERS
# =============================================================================

class APIClient:
    """
    HTTP client wrapper with bearer auth and an optional approval token.
    """

    def __init__(self, app, config: SuiteConfig, token: Optional[str] = None):
        self.client = httpx.Client(
            transport=httpx.WSGITransport(app=app),
            base_url=config.base_url,
            timeout=config.request_timeout,
        )
        self.token = token

    def _headers(self, approval_token: Optional[str] = None) -> Dict:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if approval_token:
            headers["X-Approval-Token"] = approval_token
        return headers

    def get(self, path: str, params: Optional[Dict] = None) -> httpx.Response:
        return self.client.get(path, headers=self._headers(), params=params)

    def post(self, path: str, json: Optional[Dict] = None, approval_token: Optional[str] = None) -> httpx.Response:
        return self.client.post(path, headers=self._headers(approval_token), json=json)

    def put(self, path: str, json: Optional[Dict] = None) -> httpx.Response:
        return self.client.put(path, headers=self._headers(), json=json)

    def close(self):
        self.client.close()


# =============================================================================
# TEST DATA FACTORY
# =============================================================================

class DataFactory:
    """
    Creates test data.

    Catalog rows are inserted directly: product CRUD is not part of this API.
    Everything else goes through the HTTP surface.
    """

    def __init__(self, app, anonymous: APIClient, admin: APIClient, config: SuiteConfig):
        self.app = app
        self.anonymous = anonymous
        self.admin = admin
        self.config = config

    # Shared across instances: the database outlives a single test.
    _counter = itertools.count(1)

    def create_product(self, *, price: str = "10.00", stock: str = "100", unit_type: str = "unit") -> int:
        n = next(self._counter)
        with self.app.app_context():
            product = Product(
                sku=f"API-{n:05d}",
                name=f"API Product {n}",
                price=Decimal(price),
                current_stock=Decimal(stock),
                unit_type=unit_type,
            )
            db.session.add(product)
            db.session.commit()
            return product.id

    def set_settings(self, **values) -> None:
        response = self.admin.put("/api/settings", json=values)
        assert_response(response, 200, "Update policy settings", "greenstore/routes/settings.py")

    def approval(self, action: str, email: str = "manager@api.test") -> str:
        response = self.anonymous.post("/api/approvals", json={
            "email": email,
            "password": self.config.password,
            "action": action,
            "reason": "api suite",
        })
        assert_response(response, 201, f"Issue {action} approval", "greenstore/routes/approvals.py")
        return response.json()["token"]


# =============================================================================
# FIXTURES
# =============================================================================

ROLES = ("operator", "supervisor", "manager", "admin")


@pytest.fixture(scope="session")
def suite_config() -> SuiteConfig:
    return SuiteConfig()


@pytest.fixture(scope="session")
def api_app(tmp_path_factory, suite_config: SuiteConfig):
    db_file = tmp_path_factory.mktemp("greenstore_api") / "api.sqlite3"
    config = type("ApiSuiteConfig", (Config,), {
        "TESTING": True,
        "SECRET_KEY": "api-suite-secret",
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_file}",
        "SQLALCHEMY_ENGINE_OPTIONS": {},
    })
    app = create_app(config)

    with app.app_context():
        db.create_all()
        settings_service.ensure_default_settings()
        for role in ROLES:
            create_user(
                name=f"{role.title()} API",
                email=f"{role}@api.test",
                password=suite_config.password,
                role=role,
                rounds=4,
            )
        db.session.commit()

    yield app

    with app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.fixture(scope="session")
def role_tokens(api_app) -> Dict[str, str]:
    from greenstore.models import User

    tokens = {}
    with api_app.app_context():
        for user in db.session.query(User).all():
            _, tokens[user.role] = session_service.create_session(user.id)
    return tokens


def _client(api_app, suite_config, token=None) -> Generator[APIClient, None, None]:
    client = APIClient(api_app, suite_config, token)
    yield client
    client.close()


@pytest.fixture
def anonymous_client(api_app, suite_config):
    yield from _client(api_app, suite_config)


@pytest.fixture
def operator_client(api_app, suite_config, role_tokens):
    yield from _client(api_app, suite_config, role_tokens["operator"])


@pytest.fixture
def supervisor_client(api_app, suite_config, role_tokens):
    yield from _client(api_app, suite_config, role_tokens["supervisor"])


@pytest.fixture
def admin_client(api_app, suite_config, role_tokens):
    yield from _client(api_app, suite_config, role_tokens["admin"])


@pytest.fixture
def factory(api_app, anonymous_client, admin_client, suite_config) -> Generator[DataFactory, None, None]:
    """Data factory; policy ceilings are reset to disabled after each test."""
    factory = DataFactory(api_app, anonymous_client, admin_client, suite_config)
    yield factory
    factory.set_settings(max_discount="0", approval_threshold="0", max_losses="0", max_stock_adjust="0")


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "smoke: Quick smoke tests for critical paths")
    config.addinivalue_line("markers", "inventory: Stock ledger tests")
    config.addinivalue_line("markers", "sales: Sales workflow tests")
    config.addinivalue_line("markers", "approvals: Approval workflow tests")
