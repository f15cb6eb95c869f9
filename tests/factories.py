from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from travelsync.core.common.suppliers import SupplierDefaults
from travelsync.core.erp.client import ErpCallTrace
from travelsync.core.erp_sync import ErpSyncOrchestrator
from travelsync.core.mappings import SupplierMappingRecord, SupplierMappingService
from travelsync.core.preflight import PreflightValidator
from travelsync.core.proposals import (
    ProposalAcceptRequest,
    ProposalCreateRequest,
    ProposalVersionRequest,
    ProposalWorkflowService,
)
from travelsync.core.snapshots import RawSnapshot, SnapshotResolver
from travelsync.infrastructure.erp import DeterministicErpSimulator
from travelsync.infrastructure.erp_sync import InMemorySyncRecordRepository
from travelsync.infrastructure.mappings import InMemorySupplierMappingRepository
from travelsync.infrastructure.proposals import InMemoryProposalRepository

HOTEL_OBJECT_ID = 412
GOLF_OBJECT_ID = 77
SON_VIDA_SUPPLIER_ID = "1300452"
SON_GUAL_SUPPLIER_ID = "1300977"


class FixedClock:
    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, *, seconds: int) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class RecordingNotificationSink:
    def __init__(self) -> None:
        self.events: list[dict[str, Any]] = []

    def notify_sync_error(
        self, *, proposal_id: str, error: str, trace: Optional[ErpCallTrace] = None
    ) -> None:
        self.events.append({"proposal_id": proposal_id, "error": error, "trace": trace})


def hotel_item(**overrides: Any) -> dict[str, Any]:
    item = {
        "service_type": "hotel",
        "display_name": "Hotel Son Vida - 3 nights",
        "object_type": "hotel",
        "object_id": HOTEL_OBJECT_ID,
        "start_date": "2026-05-01",
        "end_date": "2026-05-04",
        "quantity": 3,
        "pax_quantity": 2,
        "room_pricing": {
            "double": {"enabled": True, "rooms": 1, "pricing_basis": "per_room"},
            "single": {"enabled": False, "rooms": 0},
        },
        "giav_pricing": {"giav_total_net": 700.0, "giav_total_pvp": 900.0},
        "line_cost_net": 690.0,
        "line_sell_price": 880.0,
        "notes_public": "Sea view",
    }
    item.update(overrides)
    return item


def golf_item(**overrides: Any) -> dict[str, Any]:
    item = {
        "service_type": "golf",
        "display_name": "Green fees Son Gual",
        "object_type": "golf",
        "object_id": GOLF_OBJECT_ID,
        "start_date": "2026-05-02",
        "end_date": "2026-05-02",
        "green_fees_per_person": 2,
        "pax_quantity": 2,
        "line_cost_net": 240.0,
        "line_sell_price": 300.0,
    }
    item.update(overrides)
    return item


def transfer_item(**overrides: Any) -> dict[str, Any]:
    item = {
        "service_type": "transfer",
        "display_name": "Airport transfer",
        "object_type": "manual",
        "object_id": 0,
        "start_date": "2026-05-01",
        "pax_quantity": 2,
        "line_cost_net": 50.0,
        "line_sell_price": 70.0,
    }
    item.update(overrides)
    return item


def snapshot(*items: dict[str, Any], **header: Any) -> dict[str, Any]:
    base_header = {
        "title": "Mallorca golf week",
        "customer_name": "Ana Garcia Lopez",
        "customer_email": "ana@example.com",
        "customer_country": "ES",
        "start_date": "2026-05-01",
        "end_date": "2026-05-04",
        "pax_total": 2,
        "currency": "EUR",
    }
    base_header.update(header)
    sell = sum(float(item.get("line_sell_price") or 0) for item in items)
    cost = sum(float(item.get("line_cost_net") or 0) for item in items)
    return {
        "header": base_header,
        "items": list(items),
        "totals": {"totals_sell_price": round(sell, 2), "totals_cost_net": round(cost, 2)},
    }


def mapping(
    *,
    object_type: str,
    object_id: int,
    supplier_id: str,
    supplier_name: Optional[str] = None,
    status: str = "active",
) -> SupplierMappingRecord:
    return SupplierMappingRecord(
        object_type=object_type,
        object_id=object_id,
        entity_type="supplier",
        entity_id=supplier_id,
        supplier_id=supplier_id,
        supplier_name=supplier_name,
        status=status,
        match_type="manual",
        updated_at=datetime(2026, 2, 1, tzinfo=timezone.utc),
        updated_by="admin_1",
    )


@dataclass
class Harness:
    clock: FixedClock
    erp: DeterministicErpSimulator
    defaults: SupplierDefaults
    proposals: InMemoryProposalRepository
    mappings: InMemorySupplierMappingRepository
    sync_records: InMemorySyncRecordRepository
    notifications: RecordingNotificationSink
    resolver: SnapshotResolver
    preflight: PreflightValidator
    orchestrator: ErpSyncOrchestrator
    service: ProposalWorkflowService
    mapping_service: SupplierMappingService
    created: list[str] = field(default_factory=list)

    def map_default_catalog(self) -> None:
        self.mappings.upsert_mapping(
            mapping(
                object_type="hotel",
                object_id=HOTEL_OBJECT_ID,
                supplier_id=SON_VIDA_SUPPLIER_ID,
                supplier_name="Son Vida",
            )
        )
        self.mappings.upsert_mapping(
            mapping(
                object_type="golf",
                object_id=GOLF_OBJECT_ID,
                supplier_id=SON_GUAL_SUPPLIER_ID,
                supplier_name="Son Gual",
            )
        )

    def create_draft(self, **overrides: Any) -> str:
        payload = {"created_by": "agent_7", "title": "Draft", "pax_total": 2}
        payload.update(overrides)
        created = self.service.create_proposal(payload=ProposalCreateRequest(**payload))
        self.created.append(created.proposal.proposal_id)
        return created.proposal.proposal_id

    def send(self, proposal_id: str, raw_snapshot: dict[str, Any]):
        return self.service.send_version(
            proposal_id=proposal_id,
            payload=ProposalVersionRequest(
                created_by="agent_7", snapshot=RawSnapshot.model_validate(raw_snapshot)
            ),
        )

    def accepted_proposal(self, raw_snapshot: Optional[dict[str, Any]] = None) -> str:
        proposal_id = self.create_draft()
        sent = self.send(
            proposal_id, raw_snapshot or snapshot(hotel_item(), golf_item(), transfer_item())
        )
        self.service.accept_version(
            proposal_id=proposal_id,
            payload=ProposalAcceptRequest(
                version_id=sent.version.version_id,
                accepted_by="admin",
                full_name="Ana Garcia Lopez",
                document="12345678z",
            ),
        )
        return proposal_id


def build_harness(
    *,
    erp: Optional[DeterministicErpSimulator] = None,
    defaults: Optional[SupplierDefaults] = None,
    sync_on_public_accept: bool = True,
    pending_timeout_seconds: int = 300,
    notifications: Optional[RecordingNotificationSink] = None,
) -> Harness:
    clock = FixedClock()
    erp = erp or DeterministicErpSimulator(seed=7)
    defaults = defaults or SupplierDefaults()
    proposals = InMemoryProposalRepository()
    mappings = InMemorySupplierMappingRepository()
    sync_records = InMemorySyncRecordRepository()
    notifications = notifications or RecordingNotificationSink()
    resolver = SnapshotResolver(mapping_repository=mappings, supplier_defaults=defaults)
    preflight = PreflightValidator(
        proposal_repository=proposals,
        mapping_repository=mappings,
        supplier_defaults=defaults,
    )
    orchestrator = ErpSyncOrchestrator(
        proposal_repository=proposals,
        sync_record_repository=sync_records,
        erp_client=erp,
        notification_sink=notifications,
        supplier_defaults=defaults,
        pending_timeout_seconds=pending_timeout_seconds,
        clock=clock,
    )
    service = ProposalWorkflowService(
        repository=proposals,
        sync_record_repository=sync_records,
        resolver=resolver,
        preflight_validator=preflight,
        orchestrator=orchestrator,
        sync_on_public_accept=sync_on_public_accept,
        clock=clock,
    )
    mapping_service = SupplierMappingService(
        repository=mappings, erp_client=erp, supplier_defaults=defaults, clock=clock
    )
    return Harness(
        clock=clock,
        erp=erp,
        defaults=defaults,
        proposals=proposals,
        mappings=mappings,
        sync_records=sync_records,
        notifications=notifications,
        resolver=resolver,
        preflight=preflight,
        orchestrator=orchestrator,
        service=service,
        mapping_service=mapping_service,
    )
