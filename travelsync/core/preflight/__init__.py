from travelsync.core.preflight.errors import PreflightVersionNotFoundError
from travelsync.core.preflight.service import PreflightValidator

__all__ = ["PreflightValidator", "PreflightVersionNotFoundError"]
