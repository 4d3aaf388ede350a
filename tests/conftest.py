"""
Pytest configuration and shared fixtures for the pactum test suite.

Most engine tests run once per validation backend through the
parametrized ``schema_validator`` fixture.
"""

import sys
from pathlib import Path
from typing import Any

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from infrastructure.configuration import Settings  # noqa: E402
from infrastructure.monitoring import reset_metrics  # noqa: E402
from pactum.auth import create_jwt  # noqa: E402
from pactum.router import ContractRouter  # noqa: E402
from pactum.validator import JsonSchemaValidator, PydanticSchemaValidator  # noqa: E402

TEST_SECRET = "test-secret"


@pytest.fixture(params=["pydantic", "jsonschema"])
def schema_validator(request: pytest.FixtureRequest) -> Any:
    """Provide each schema backend in turn."""
    if request.param == "pydantic":
        return PydanticSchemaValidator()
    return JsonSchemaValidator()


@pytest.fixture
def settings() -> Settings:
    """Settings for the test environment with a known JWT secret."""
    return Settings(environment="test", jwt_secret=TEST_SECRET)


@pytest.fixture(autouse=True)
def clean_metrics() -> None:
    reset_metrics()


def invoice_contract(sv: Any, **overrides: Any) -> dict[str, Any]:
    """Contract for ``GET /billing/:id/success`` used across test modules."""
    contract = {
        "name": "Get invoice",
        "summary": "Fetch one invoice",
        "params": {"id": sv.number},
        "query": {"expand": sv.optional(sv.boolean)},
        "responses": {200: {"id": sv.number, "paid": sv.boolean}},
    }
    contract.update(overrides)
    return contract


def get_invoice(request: Any, response: Any) -> None:
    response.status(200).json({"id": request.params["id"], "paid": True})


@pytest.fixture
def billing_router(schema_validator: Any, settings: Settings) -> ContractRouter:
    router = ContractRouter("/billing", schema_validator, settings=settings)
    router.get("/:id/success", invoice_contract(schema_validator), get_invoice)
    return router


def bearer(payload: dict[str, Any], secret: str = TEST_SECRET) -> str:
    return f"Bearer {create_jwt(payload, secret)}"


pytest.invoice_contract = invoice_contract
pytest.get_invoice = get_invoice
pytest.bearer = bearer
