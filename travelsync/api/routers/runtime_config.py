import os
import warnings
from dataclasses import dataclass
from typing import cast

from travelsync.core.common.suppliers import (
    DEFAULT_GENERIC_SUPPLIER_ID,
    DEFAULT_GENERIC_SUPPLIER_NAME,
    DEFAULT_PACKAGE_SUPPLIER_ID,
    SupplierDefaults,
)
from travelsync.core.erp_sync.orchestrator import (
    DEFAULT_PACKAGE_PLANNED_MARGIN_PCT,
    DEFAULT_PENDING_TIMEOUT_SECONDS,
)
from travelsync.core.erp_sync.repository import SyncRecordRepository
from travelsync.core.mappings.repository import SupplierMappingRepository
from travelsync.core.proposals.repository import ProposalRepository
from travelsync.infrastructure.erp import DeterministicErpSimulator
from travelsync.infrastructure.erp_sync import (
    InMemorySyncRecordRepository,
    PostgresSyncRecordRepository,
)
from travelsync.infrastructure.mappings import (
    InMemorySupplierMappingRepository,
    PostgresSupplierMappingRepository,
)
from travelsync.infrastructure.proposals import (
    InMemoryProposalRepository,
    PostgresProposalRepository,
)


@dataclass(frozen=True)
class Repositories:
    proposals: ProposalRepository
    mappings: SupplierMappingRepository
    sync_records: SyncRecordRepository


def env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def env_int(name: str, default: int) -> int:
    value = os.getenv(name, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise RuntimeError(f"INVALID_INTEGER_SETTING:{name}") from exc


def env_float(name: str, default: float) -> float:
    value = os.getenv(name, "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise RuntimeError(f"INVALID_NUMBER_SETTING:{name}") from exc


def env_list(name: str) -> list[str]:
    return [part.strip() for part in os.getenv(name, "").split(",") if part.strip()]


def store_backend_name() -> str:
    backend = os.getenv("TRAVELSYNC_STORE_BACKEND", "IN_MEMORY").strip().upper()
    if backend == "POSTGRES":
        return "POSTGRES"
    if backend != "IN_MEMORY":
        warnings.warn(
            f"TRAVELSYNC_STORE_BACKEND={backend} is not supported; using IN_MEMORY.",
            RuntimeWarning,
            stacklevel=2,
        )
    return "IN_MEMORY"


def postgres_dsn() -> str:
    return os.getenv("TRAVELSYNC_POSTGRES_DSN", "").strip()


def supplier_defaults() -> SupplierDefaults:
    required = env_list("ERP_SUPPLIER_REQUIRED_SERVICE_TYPES") or ["hotel", "golf"]
    return SupplierDefaults(
        supplier_id=os.getenv("ERP_DEFAULT_SUPPLIER_ID", DEFAULT_GENERIC_SUPPLIER_ID).strip(),
        supplier_name=os.getenv("ERP_DEFAULT_SUPPLIER_NAME", DEFAULT_GENERIC_SUPPLIER_NAME).strip(),
        package_supplier_id=os.getenv(
            "ERP_PACKAGE_SUPPLIER_ID", DEFAULT_PACKAGE_SUPPLIER_ID
        ).strip(),
        required_service_types=frozenset(required),
    )


def package_planned_margin_pct() -> float:
    return env_float("ERP_PACKAGE_PLANNED_MARGIN_PCT", DEFAULT_PACKAGE_PLANNED_MARGIN_PCT)


def pending_timeout_seconds() -> int:
    return env_int("ERP_SYNC_PENDING_TIMEOUT_SECONDS", DEFAULT_PENDING_TIMEOUT_SECONDS)


def sync_on_public_accept() -> bool:
    return env_flag("PROPOSAL_SYNC_ON_PUBLIC_ACCEPT", True)


def build_erp_client() -> DeterministicErpSimulator:
    return DeterministicErpSimulator(
        seed=env_int("ERP_SIMULATOR_SEED", 42),
        fail_operations=env_list("ERP_SIMULATOR_FAIL_OPERATIONS"),
    )


def _postgres_connection_exception_types() -> tuple[type[BaseException], ...]:
    types: list[type[BaseException]] = [
        ConnectionError,
        OSError,
        TimeoutError,
        TypeError,
        ValueError,
    ]
    try:
        import psycopg
    except ImportError:
        pass
    else:
        types.append(psycopg.Error)
    return tuple(types)


def build_repositories() -> Repositories:
    if store_backend_name() != "POSTGRES":
        return Repositories(
            proposals=InMemoryProposalRepository(),
            mappings=InMemorySupplierMappingRepository(),
            sync_records=InMemorySyncRecordRepository(),
        )
    dsn = postgres_dsn()
    if not dsn:
        raise RuntimeError("TRAVELSYNC_POSTGRES_DSN_REQUIRED")
    try:
        return Repositories(
            proposals=cast(ProposalRepository, PostgresProposalRepository(dsn=dsn)),
            mappings=cast(SupplierMappingRepository, PostgresSupplierMappingRepository(dsn=dsn)),
            sync_records=cast(SyncRecordRepository, PostgresSyncRecordRepository(dsn=dsn)),
        )
    except RuntimeError:
        raise
    except _postgres_connection_exception_types() as exc:
        raise RuntimeError("TRAVELSYNC_POSTGRES_CONNECTION_FAILED") from exc
