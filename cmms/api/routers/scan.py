from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from cmms.api.deps import MAINTENANCE_ERRORS, http_error, require_perm
from cmms.domain.models import ScanRequest, ScanResultRead
from cmms.domain.permissions import PERM_ASSETS_READ
from cmms.services.scan_service import ScanService

router = APIRouter()


def get_scan_service() -> ScanService:
    return ScanService()


Service = Annotated[ScanService, Depends(get_scan_service)]


@router.post(
    "",
    response_model=ScanResultRead,
    dependencies=[Depends(require_perm(PERM_ASSETS_READ))],
)
def scan_barcode(payload: ScanRequest, service: Service) -> ScanResultRead:
    try:
        return service.lookup(payload.barcode)
    except MAINTENANCE_ERRORS as exc:
        raise http_error(exc) from exc
