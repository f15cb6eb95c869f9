import logging
from typing import Any, Optional

from travelsync.core.common.suppliers import SupplierDefaults
from travelsync.core.mappings.repository import SupplierMappingRepository
from travelsync.core.mappings.service import effective_supplier_mapping
from travelsync.core.preflight.errors import PreflightVersionNotFoundError
from travelsync.core.proposals.models import ProposalItemRecord, ProposalVersionRecord
from travelsync.core.proposals.repository import ProposalRepository
from travelsync.core.snapshots.models import PreflightMessage, PreflightResult, PreflightSeverity

logger = logging.getLogger(__name__)

_ITEM_PREFLIGHT_KEYS = ("preflight_ok", "warnings", "blocking")


class PreflightValidator:
    """Decides whether a persisted version may be queued for ERP synchronization.

    Versions resolved at send time carry per-item diagnostics inside the snapshot; those are
    re-aggregated as-is. Older versions without them are checked again from their stored
    item rows against the current mapping store.
    """

    def __init__(
        self,
        *,
        proposal_repository: ProposalRepository,
        mapping_repository: SupplierMappingRepository,
        supplier_defaults: SupplierDefaults,
    ) -> None:
        self._proposals = proposal_repository
        self._mappings = mapping_repository
        self._defaults = supplier_defaults

    def check_version(self, *, version_id: str) -> PreflightResult:
        version = self._proposals.get_version(version_id=version_id)
        if version is None:
            raise PreflightVersionNotFoundError("PROPOSAL_VERSION_NOT_FOUND")

        if _has_item_diagnostics(version):
            result = _aggregate_snapshot(version.snapshot_json)
        else:
            result = self._check_items(self._proposals.list_items(version_id=version_id))

        logger.info(
            "preflight.checked",
            extra={
                "extra_fields": {
                    "version_id": version_id,
                    "source": result.source,
                    "ok": result.ok,
                    "warnings": len(result.warnings),
                    "blocking": len(result.blocking),
                }
            },
        )
        return result

    def _check_items(self, items: list[ProposalItemRecord]) -> PreflightResult:
        warnings: list[PreflightMessage] = []
        blocking: list[PreflightMessage] = []
        for item in items:
            if not self._defaults.requires_supplier(item.service_type):
                continue
            supplier_id = (item.erp_supplier_id or "").strip()

            if not item.object_type or item.object_type == "manual" or item.object_id <= 0:
                if supplier_id:
                    warnings.append(
                        _item_message(
                            item,
                            code="manual_item_with_supplier",
                            message="Manual item with an explicit supplier",
                            severity="warning",
                            details={
                                "supplier": {
                                    "erp_supplier_id": supplier_id,
                                    "erp_supplier_name": item.erp_supplier_name.strip(),
                                }
                            },
                        )
                    )
                else:
                    blocking.append(
                        _item_message(
                            item,
                            code="missing_supplier_for_manual_item",
                            message="Manual item without supplier",
                            severity="blocking",
                        )
                    )
                continue

            mapping = self._mappings.get_active_mapping(
                object_type=item.object_type, object_id=item.object_id
            )
            if mapping is None:
                fallback = effective_supplier_mapping(
                    repository=self._mappings,
                    supplier_defaults=self._defaults,
                    object_type=item.object_type,
                    object_id=item.object_id,
                )
                warnings.append(
                    _item_message(
                        item,
                        code="missing_active_mapping_fallback_generic_supplier",
                        message="No active mapping, the generic supplier will be used",
                        severity="warning",
                        details={
                            "object_type": item.object_type,
                            "object_id": item.object_id,
                            "fallback": {
                                "erp_supplier_id": fallback.supplier_id,
                                "erp_supplier_name": fallback.supplier_name,
                                "status": fallback.status,
                                "match_type": fallback.match_type,
                            },
                        },
                    )
                )
                continue

            if self._defaults.is_generic(mapping.supplier_id):
                warnings.append(
                    _item_message(
                        item,
                        code="generic_supplier",
                        message="Mapped to the generic supplier",
                        severity="warning",
                        details={
                            "object_type": item.object_type,
                            "object_id": item.object_id,
                            "supplier": {
                                "erp_supplier_id": mapping.supplier_id,
                                "erp_supplier_name": mapping.supplier_name or "",
                            },
                        },
                    )
                )

        return PreflightResult(
            ok=not blocking, warnings=warnings, blocking=blocking, source="legacy"
        )


def _has_item_diagnostics(version: ProposalVersionRecord) -> bool:
    items = version.snapshot_json.get("items")
    if not isinstance(items, list):
        return False
    return any(
        isinstance(item, dict) and any(key in item for key in _ITEM_PREFLIGHT_KEYS)
        for item in items
    )


def _aggregate_snapshot(snapshot: dict[str, Any]) -> PreflightResult:
    warnings: list[PreflightMessage] = []
    blocking: list[PreflightMessage] = []
    for item in snapshot.get("items") or []:
        if not isinstance(item, dict):
            continue
        warnings.extend(_stored_messages(item.get("warnings"), severity="warning"))
        blocking.extend(_stored_messages(item.get("blocking"), severity="blocking"))
    return PreflightResult(ok=not blocking, warnings=warnings, blocking=blocking, source="snapshot")


def _stored_messages(raw: Any, *, severity: PreflightSeverity) -> list[PreflightMessage]:
    if not isinstance(raw, list):
        return []
    messages = []
    for entry in raw:
        if isinstance(entry, dict):
            messages.append(
                PreflightMessage(
                    code=str(entry.get("code") or "UNKNOWN"),
                    message=str(entry.get("message") or ""),
                    severity=severity,
                    item_id=entry.get("item_id"),
                    service_type=entry.get("service_type"),
                    title=entry.get("title"),
                    details=entry.get("details") or {},
                )
            )
        elif isinstance(entry, str):
            messages.append(PreflightMessage(code=entry, message=entry, severity=severity))
    return messages


def _item_message(
    item: ProposalItemRecord,
    *,
    code: str,
    message: str,
    severity: PreflightSeverity,
    details: Optional[dict[str, Any]] = None,
) -> PreflightMessage:
    return PreflightMessage(
        code=code,
        message=message,
        severity=severity,
        item_id=item.item_id,
        service_type=item.service_type,
        title=item.display_name,
        details=details or {},
    )
