import pytest

from travelsync.api.routers import runtime_config
from travelsync.api.routers.runtime import (
    build_runtime,
    get_proposal_workflow_service,
    get_runtime,
    reset_runtime_for_tests,
)
from travelsync.core.erp import CustomerCreateRequest, ErpCallError
from travelsync.infrastructure.erp import DeterministicErpSimulator
from travelsync.infrastructure.proposals import InMemoryProposalRepository


def test_store_backend_defaults_to_in_memory(monkeypatch):
    assert runtime_config.store_backend_name() == "IN_MEMORY"

    monkeypatch.setenv("TRAVELSYNC_STORE_BACKEND", "postgres")
    assert runtime_config.store_backend_name() == "POSTGRES"

    monkeypatch.setenv("TRAVELSYNC_STORE_BACKEND", "sqlite")
    with pytest.warns(RuntimeWarning):
        assert runtime_config.store_backend_name() == "IN_MEMORY"


def test_numeric_settings_reject_garbage(monkeypatch):
    monkeypatch.setenv("ERP_SYNC_PENDING_TIMEOUT_SECONDS", "soon")
    monkeypatch.setenv("ERP_PACKAGE_PLANNED_MARGIN_PCT", "lots")

    with pytest.raises(RuntimeError) as timeout_error:
        runtime_config.pending_timeout_seconds()
    with pytest.raises(RuntimeError) as margin_error:
        runtime_config.package_planned_margin_pct()

    assert str(timeout_error.value) == "INVALID_INTEGER_SETTING:ERP_SYNC_PENDING_TIMEOUT_SECONDS"
    assert str(margin_error.value) == "INVALID_NUMBER_SETTING:ERP_PACKAGE_PLANNED_MARGIN_PCT"


def test_numeric_settings_parse_values(monkeypatch):
    monkeypatch.setenv("ERP_SYNC_PENDING_TIMEOUT_SECONDS", " 120 ")
    monkeypatch.setenv("ERP_PACKAGE_PLANNED_MARGIN_PCT", "12.5")

    assert runtime_config.pending_timeout_seconds() == 120
    assert runtime_config.package_planned_margin_pct() == 12.5


def test_supplier_defaults_read_environment(monkeypatch):
    monkeypatch.setenv("ERP_DEFAULT_SUPPLIER_ID", " 1400001 ")
    monkeypatch.setenv("ERP_DEFAULT_SUPPLIER_NAME", "Varios")
    monkeypatch.setenv("ERP_SUPPLIER_REQUIRED_SERVICE_TYPES", "hotel, golf, transfer")

    defaults = runtime_config.supplier_defaults()

    assert defaults.supplier_id == "1400001"
    assert defaults.supplier_name == "Varios"
    assert defaults.requires_supplier("transfer")


def test_sync_on_public_accept_flag(monkeypatch):
    assert runtime_config.sync_on_public_accept() is True

    monkeypatch.setenv("PROPOSAL_SYNC_ON_PUBLIC_ACCEPT", "off")
    assert runtime_config.sync_on_public_accept() is False


def test_erp_client_reads_simulator_settings(monkeypatch):
    monkeypatch.setenv("ERP_SIMULATOR_SEED", "5")
    monkeypatch.setenv("ERP_SIMULATOR_FAIL_OPERATIONS", "create_case, create_customer")

    client = runtime_config.build_erp_client()

    assert isinstance(client, DeterministicErpSimulator)
    assert client.seed == 5
    with pytest.raises(ErpCallError):
        client.create_customer(CustomerCreateRequest(document="X1234567"))
    assert client.search_customers(document="X1234567").first_id is None


def test_postgres_backend_requires_dsn(monkeypatch):
    monkeypatch.setenv("TRAVELSYNC_STORE_BACKEND", "POSTGRES")

    with pytest.raises(RuntimeError) as exc:
        runtime_config.build_repositories()
    assert str(exc.value) == "TRAVELSYNC_POSTGRES_DSN_REQUIRED"


def test_postgres_connection_failure_is_reported(monkeypatch):
    monkeypatch.setenv("TRAVELSYNC_STORE_BACKEND", "POSTGRES")
    monkeypatch.setenv("TRAVELSYNC_POSTGRES_DSN", "postgresql://u:p@localhost:1/travelsync")

    def _refuse(**_kwargs):
        raise ConnectionError("refused")

    monkeypatch.setattr(runtime_config, "PostgresProposalRepository", _refuse)

    with pytest.raises(RuntimeError) as exc:
        runtime_config.build_repositories()
    assert str(exc.value) == "TRAVELSYNC_POSTGRES_CONNECTION_FAILED"
    assert isinstance(exc.value.__cause__, ConnectionError)


def test_postgres_repository_errors_propagate(monkeypatch):
    monkeypatch.setenv("TRAVELSYNC_STORE_BACKEND", "POSTGRES")
    monkeypatch.setenv("TRAVELSYNC_POSTGRES_DSN", "postgresql://u:p@localhost:1/travelsync")

    def _missing_driver(**_kwargs):
        raise RuntimeError("PROPOSAL_POSTGRES_DRIVER_MISSING")

    monkeypatch.setattr(runtime_config, "PostgresProposalRepository", _missing_driver)

    with pytest.raises(RuntimeError) as exc:
        runtime_config.build_repositories()
    assert str(exc.value) == "PROPOSAL_POSTGRES_DRIVER_MISSING"


def test_runtime_is_built_lazily_and_can_be_replaced():
    first = get_runtime()

    assert get_runtime() is first
    assert get_proposal_workflow_service() is first.proposals
    assert isinstance(first.repositories.proposals, InMemoryProposalRepository)

    replacement = build_runtime(erp_client=DeterministicErpSimulator(seed=1))
    reset_runtime_for_tests(replacement)
    assert get_runtime() is replacement
