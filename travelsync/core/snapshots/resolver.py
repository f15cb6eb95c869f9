import logging
from copy import deepcopy
from typing import Any, Optional, Protocol

from travelsync.core.common.suppliers import SupplierDefaults
from travelsync.core.mappings.repository import SupplierMappingRepository
from travelsync.core.snapshots.models import (
    PreflightMessage,
    PreflightResult,
    ResolutionContext,
    ResolutionError,
    ResolutionLogEntry,
    ResolutionLogs,
    SnapshotResolution,
)
from travelsync.core.snapshots.nightly_rates import normalize_hotel_nightly_rates

logger = logging.getLogger(__name__)


class CatalogEnricher(Protocol):
    def enrich(self, item: dict[str, Any]) -> dict[str, Any]: ...


class SnapshotResolver:
    """Normalizes a pricing snapshot and resolves an ERP supplier for every item.

    Resolution only reads the mapping store. For the same snapshot and mapping state the
    resolved snapshot is identical, which is what lets versions be hashed and compared.
    """

    def __init__(
        self,
        *,
        mapping_repository: SupplierMappingRepository,
        supplier_defaults: SupplierDefaults,
        enricher: Optional[CatalogEnricher] = None,
    ) -> None:
        self._mappings = mapping_repository
        self._defaults = supplier_defaults
        self._enricher = enricher

    def resolve(
        self,
        snapshot: dict[str, Any],
        *,
        context: Optional[ResolutionContext] = None,
    ) -> SnapshotResolution:
        resolved = deepcopy(snapshot)
        raw_items = resolved.get("items")
        items = list(raw_items) if isinstance(raw_items, list) else []

        all_warnings: list[PreflightMessage] = []
        all_blocking: list[PreflightMessage] = []
        errors: list[ResolutionError] = []
        logs = ResolutionLogs()

        for index, raw_item in enumerate(items):
            item = dict(raw_item) if isinstance(raw_item, dict) else {}
            item, warnings, blocking = self._resolve_item(index=index, item=item, logs=logs)
            errors.extend(ResolutionError(index=index, code=message.code) for message in blocking)
            all_warnings.extend(warnings)
            all_blocking.extend(blocking)
            items[index] = item

        preflight = PreflightResult(
            ok=not all_blocking,
            warnings=all_warnings,
            blocking=all_blocking,
            source="snapshot",
        )
        resolved["items"] = items
        resolved["preflight"] = {
            "ok": preflight.ok,
            "warnings": [_dump_message(message) for message in all_warnings],
            "blocking": [_dump_message(message) for message in all_blocking],
        }
        resolution_context = context or ResolutionContext()
        logger.info(
            "snapshot.resolved",
            extra={
                "extra_fields": {
                    "proposal_id": resolution_context.proposal_id,
                    "version_number": resolution_context.version_number,
                    "items": len(items),
                    "warnings": len(all_warnings),
                    "blocking": len(all_blocking),
                    "generic_items": len(logs.generic),
                }
            },
        )
        return SnapshotResolution(
            snapshot=resolved,
            preflight=preflight,
            errors=errors,
            logs=logs,
            context=resolution_context,
        )

    def _resolve_item(
        self,
        *,
        index: int,
        item: dict[str, Any],
        logs: ResolutionLogs,
    ) -> tuple[dict[str, Any], list[PreflightMessage], list[PreflightMessage]]:
        warnings: list[PreflightMessage] = []
        blocking: list[PreflightMessage] = []

        service_type = str(item.get("service_type") or "")
        requires_supplier = self._defaults.requires_supplier(service_type)
        object_type = str(item.get("object_type") or "")
        object_id = _as_int(item.get("object_id"))
        is_manual = object_type == "manual" or object_id <= 0
        log_entry = ResolutionLogEntry(index=index, service_type=service_type)

        display_name = str(item.get("display_name") or "").strip()
        if not display_name:
            display_name = str(item.get("title") or "").strip()
        item["display_name"] = display_name
        if not display_name:
            blocking.append(
                _blocking("MISSING_DISPLAY_NAME", "display_name is required for snapshot")
            )

        if service_type == "golf" and _as_int(item.get("green_fees_per_person")) <= 0:
            blocking.append(
                _blocking(
                    "MISSING_GREEN_FEES", "green_fees_per_person must be >= 1 for golf services"
                )
            )
        if service_type == "hotel":
            patch, rate_warnings, rate_blocking = normalize_hotel_nightly_rates(item)
            item.update(patch)
            warnings.extend(rate_warnings)
            blocking.extend(rate_blocking)
            blocking.extend(_hotel_structure_blocking(item))

        override = bool(item.get("supplier_override")) or bool(item.get("erp_supplier_override"))
        explicit_supplier_id = str(item.get("erp_supplier_id") or "").strip()
        explicit_supplier_name = str(item.get("erp_supplier_name") or "").strip()

        supplier_id = ""
        supplier_name = ""
        entity_type = ""
        entity_id = ""
        supplier_source = ""

        if is_manual:
            supplier_source = "manual"
            if explicit_supplier_id:
                supplier_id = explicit_supplier_id
                supplier_name = explicit_supplier_name
            elif requires_supplier:
                supplier_id = self._defaults.supplier_id
                supplier_name = self._defaults.supplier_name
                logs.generic.append(log_entry)
            if supplier_id:
                entity_type = "supplier"
                entity_id = supplier_id
            if requires_supplier:
                warnings.append(
                    _warning("MANUAL_SERVICE", "Manual service requires supplier review")
                )
        elif override and explicit_supplier_id:
            supplier_source = "override"
            supplier_id = explicit_supplier_id
            supplier_name = explicit_supplier_name
            entity_type = "supplier"
            entity_id = supplier_id
            logs.override.append(log_entry)
        else:
            mapping = None
            if object_type:
                mapping = self._mappings.get_active_mapping(
                    object_type=object_type, object_id=object_id
                )
            if mapping is not None:
                supplier_source = "mapped"
                supplier_id = mapping.supplier_id
                supplier_name = mapping.supplier_name or ""
                entity_type = mapping.entity_type
                entity_id = mapping.entity_id or supplier_id
                if requires_supplier and self._defaults.is_generic(supplier_id):
                    warnings.append(_warning("GENERIC_SUPPLIER", "Mapped supplier is generic"))
            elif requires_supplier:
                supplier_source = "generic"
                supplier_id = self._defaults.supplier_id
                supplier_name = self._defaults.supplier_name
                entity_type = "supplier"
                entity_id = supplier_id
                warnings.append(
                    _warning("GENERIC_SUPPLIER", "Missing mapping, using generic supplier")
                )
                logs.generic.append(log_entry)

        if requires_supplier and not supplier_id:
            blocking.append(_blocking("MISSING_SUPPLIER", "Supplier required but missing"))
        if supplier_id and not supplier_name:
            warnings.append(_warning("SUPPLIER_NAME_MISSING", "Supplier name missing"))
            logs.missing_supplier_name.append(log_entry)

        item["erp_supplier_id"] = supplier_id or None
        item["erp_supplier_name"] = supplier_name
        if entity_type:
            item["erp_entity_type"] = entity_type
        if entity_id:
            item["erp_entity_id"] = entity_id
        item["supplier_source"] = supplier_source or None
        item["supplier_resolution_chain"] = _resolution_chain(
            requires_supplier=requires_supplier, is_manual=is_manual, override=override
        )
        item["warnings"] = [_dump_message(message) for message in warnings]
        item["blocking"] = [_dump_message(message) for message in blocking]
        item["preflight_ok"] = not blocking
        if blocking:
            logs.blocking.append(log_entry)

        self._enrich(item=item, index=index)
        return item, warnings, blocking

    def _enrich(self, *, item: dict[str, Any], index: int) -> None:
        if self._enricher is None:
            return
        try:
            metadata = self._enricher.enrich(deepcopy(item))
            catalog_meta = dict(metadata) if metadata else None
        except Exception:
            logger.debug(
                "snapshot.enrichment_failed",
                exc_info=True,
                extra={"extra_fields": {"index": index}},
            )
            return
        if catalog_meta:
            item["catalog_meta"] = catalog_meta


def build_item_row(*, version_id: str, item: dict[str, Any]) -> dict[str, Any]:
    """Flattens a resolved snapshot item into the persisted item row shape."""
    return {
        "version_id": version_id,
        "day_index": _as_int(item.get("day_index"), default=1),
        "service_type": str(item.get("service_type") or ""),
        "display_name": str(item.get("display_name") or ""),
        "object_type": _optional_str(item.get("object_type")),
        "object_id": _as_int(item.get("object_id")),
        "erp_entity_type": _optional_str(item.get("erp_entity_type")),
        "erp_entity_id": _optional_str(item.get("erp_entity_id")),
        "erp_supplier_id": _optional_str(item.get("erp_supplier_id")),
        "erp_supplier_name": str(item.get("erp_supplier_name") or ""),
        "supplier_source": _optional_str(item.get("supplier_source")),
        "supplier_resolution_chain": list(item.get("supplier_resolution_chain") or []),
        "warnings": list(item.get("warnings") or []),
        "blocking": list(item.get("blocking") or []),
        "preflight_ok": not item.get("blocking"),
        "start_date": _optional_str(item.get("start_date")),
        "end_date": _optional_str(item.get("end_date")),
        "quantity": _as_int(item.get("quantity"), default=1),
        "pax_quantity": _as_int(item.get("pax_quantity"), default=1),
        "unit_cost_net": _as_float(item.get("unit_cost_net")),
        "unit_sell_price": _as_float(item.get("unit_sell_price")),
        "line_cost_net": _as_float(item.get("line_cost_net")),
        "line_sell_price": _as_float(item.get("line_sell_price")),
        "notes_public": str(item.get("notes_public") or ""),
        "notes_internal": str(item.get("notes_internal") or ""),
    }


def _hotel_structure_blocking(item: dict[str, Any]) -> list[PreflightMessage]:
    blocking: list[PreflightMessage] = []
    room_pricing = item.get("room_pricing") if isinstance(item.get("room_pricing"), dict) else {}
    double = room_pricing.get("double") if isinstance(room_pricing.get("double"), dict) else {}
    single = room_pricing.get("single") if isinstance(room_pricing.get("single"), dict) else {}
    double_enabled = bool(double.get("enabled"))
    single_enabled = bool(single.get("enabled"))

    if not double_enabled and not single_enabled:
        blocking.append(
            _blocking(
                "MISSING_ROOM_PRICING",
                "At least one room pricing mode (double or single) must be enabled",
            )
        )
    if double_enabled:
        if _as_int(double.get("rooms")) < 1:
            blocking.append(
                _blocking("MISSING_DOUBLE_ROOMS", "double.rooms must be >= 1 when enabled")
            )
        if not str(double.get("pricing_basis") or "").strip():
            blocking.append(
                _blocking(
                    "MISSING_DOUBLE_BASIS", "double.pricing_basis must be provided when enabled"
                )
            )
    if single_enabled and _as_int(single.get("rooms")) < 1:
        blocking.append(_blocking("MISSING_SINGLE_ROOMS", "single.rooms must be >= 1 when enabled"))

    erp_pricing = item.get("giav_pricing") if isinstance(item.get("giav_pricing"), dict) else {}
    if _as_float(erp_pricing.get("giav_total_pvp")) <= 0:
        blocking.append(
            _blocking(
                "MISSING_GIAV_TOTAL",
                "giav_pricing.giav_total_pvp must be provided for hotel services",
            )
        )
    return blocking


def _resolution_chain(*, requires_supplier: bool, is_manual: bool, override: bool) -> list[str]:
    if not requires_supplier:
        return []
    if is_manual:
        return ["manual", "generic"]
    if override:
        return ["override", "mapping", "generic"]
    return ["mapping", "generic"]


def _dump_message(message: PreflightMessage) -> dict[str, Any]:
    return message.model_dump(mode="json", exclude_defaults=True)


def _warning(code: str, message: str) -> PreflightMessage:
    return PreflightMessage(code=code, message=message, severity="warning")


def _blocking(code: str, message: str) -> PreflightMessage:
    return PreflightMessage(code=code, message=message, severity="blocking")


def _as_int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def _as_float(value: Any, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)
