from dataclasses import dataclass
from typing import Optional

from travelsync.api.routers import runtime_config
from travelsync.core.common.suppliers import SupplierDefaults
from travelsync.core.erp.client import ErpClient
from travelsync.core.erp_sync import ErpSyncOrchestrator
from travelsync.core.mappings import SupplierMappingService
from travelsync.core.notifications import LoggingNotificationSink
from travelsync.core.preflight import PreflightValidator
from travelsync.core.proposals import ProposalWorkflowService
from travelsync.core.snapshots import SnapshotResolver


@dataclass(frozen=True)
class ServiceRuntime:
    repositories: runtime_config.Repositories
    erp_client: ErpClient
    supplier_defaults: SupplierDefaults
    proposals: ProposalWorkflowService
    mappings: SupplierMappingService


_RUNTIME: Optional[ServiceRuntime] = None


def build_runtime(
    *,
    repositories: Optional[runtime_config.Repositories] = None,
    erp_client: Optional[ErpClient] = None,
) -> ServiceRuntime:
    repositories = repositories or runtime_config.build_repositories()
    erp_client = erp_client or runtime_config.build_erp_client()
    defaults = runtime_config.supplier_defaults()

    orchestrator = ErpSyncOrchestrator(
        proposal_repository=repositories.proposals,
        sync_record_repository=repositories.sync_records,
        erp_client=erp_client,
        notification_sink=LoggingNotificationSink(),
        supplier_defaults=defaults,
        package_planned_margin_pct=runtime_config.package_planned_margin_pct(),
        pending_timeout_seconds=runtime_config.pending_timeout_seconds(),
    )
    proposals = ProposalWorkflowService(
        repository=repositories.proposals,
        sync_record_repository=repositories.sync_records,
        resolver=SnapshotResolver(
            mapping_repository=repositories.mappings, supplier_defaults=defaults
        ),
        preflight_validator=PreflightValidator(
            proposal_repository=repositories.proposals,
            mapping_repository=repositories.mappings,
            supplier_defaults=defaults,
        ),
        orchestrator=orchestrator,
        sync_on_public_accept=runtime_config.sync_on_public_accept(),
    )
    mappings = SupplierMappingService(
        repository=repositories.mappings,
        erp_client=erp_client,
        supplier_defaults=defaults,
    )
    return ServiceRuntime(
        repositories=repositories,
        erp_client=erp_client,
        supplier_defaults=defaults,
        proposals=proposals,
        mappings=mappings,
    )


def get_runtime() -> ServiceRuntime:
    global _RUNTIME
    if _RUNTIME is None:
        _RUNTIME = build_runtime()
    return _RUNTIME


def get_proposal_workflow_service() -> ProposalWorkflowService:
    return get_runtime().proposals


def get_supplier_mapping_service() -> SupplierMappingService:
    return get_runtime().mappings


def reset_runtime_for_tests(runtime: Optional[ServiceRuntime] = None) -> None:
    global _RUNTIME
    _RUNTIME = runtime
