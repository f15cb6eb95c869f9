from dataclasses import dataclass, field

DEFAULT_GENERIC_SUPPLIER_ID = "1249826"
DEFAULT_GENERIC_SUPPLIER_NAME = "Proveedores varios"
DEFAULT_PACKAGE_SUPPLIER_ID = "1250196"
DEFAULT_SUPPLIER_REQUIRED_SERVICE_TYPES = frozenset({"hotel", "golf"})


@dataclass(frozen=True)
class SupplierDefaults:
    """Generic ERP supplier configuration shared by resolution, preflight and sync.

    The generic supplier is the catch-all used when a service needs a supplier and no
    specific one could be resolved. Package container reservations are always booked
    against ``package_supplier_id``.
    """

    supplier_id: str = DEFAULT_GENERIC_SUPPLIER_ID
    supplier_name: str = DEFAULT_GENERIC_SUPPLIER_NAME
    package_supplier_id: str = DEFAULT_PACKAGE_SUPPLIER_ID
    required_service_types: frozenset[str] = field(
        default_factory=lambda: DEFAULT_SUPPLIER_REQUIRED_SERVICE_TYPES
    )

    def requires_supplier(self, service_type: str) -> bool:
        return service_type in self.required_service_types

    def is_generic(self, supplier_id: object) -> bool:
        return str(supplier_id or "").strip() == self.supplier_id
