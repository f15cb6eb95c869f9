from typing import NoReturn

from fastapi import HTTPException, status

from travelsync.core.erp_sync import ErpSyncError
from travelsync.core.mappings import (
    MappingNotFoundError,
    MappingValidationError,
    SupplierLookupError,
    SupplierNotFoundError,
)
from travelsync.core.proposals import (
    PreflightFailedError,
    ProposalNotFoundError,
    ProposalStateConflictError,
    ProposalValidationError,
)

HTTP_422_UNPROCESSABLE = getattr(
    status, "HTTP_422_UNPROCESSABLE_CONTENT", status.HTTP_422_UNPROCESSABLE_ENTITY
)


def raise_proposal_http_exception(exc: Exception) -> NoReturn:
    if isinstance(exc, ProposalNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, PreflightFailedError):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "code": str(exc),
                "blocking": [message.model_dump(mode="json") for message in exc.result.blocking],
                "warnings": [message.model_dump(mode="json") for message in exc.result.warnings],
            },
        ) from exc
    if isinstance(exc, ProposalStateConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if isinstance(exc, ProposalValidationError):
        detail: object = str(exc)
        if exc.errors:
            detail = {
                "code": str(exc),
                "errors": exc.errors,
                "preflight": exc.preflight.model_dump(mode="json") if exc.preflight else None,
            }
        raise HTTPException(status_code=HTTP_422_UNPROCESSABLE, detail=detail) from exc
    if isinstance(exc, ErpSyncError):
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "code": str(exc),
                "result": exc.result.model_dump(mode="json") if exc.result else None,
            },
        ) from exc
    raise exc


def raise_mapping_http_exception(exc: Exception) -> NoReturn:
    if isinstance(exc, (MappingNotFoundError, SupplierNotFoundError)):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if isinstance(exc, MappingValidationError):
        raise HTTPException(status_code=HTTP_422_UNPROCESSABLE, detail=str(exc)) from exc
    if isinstance(exc, SupplierLookupError):
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    raise exc
