# esign/packages/controllers/package_controller.py
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from esign.common.audit import AuditLogger
from esign.common.dependencies import get_audit, get_db, get_storage, request_context
from esign.common.storage import FileStorage
from esign.packages.schemas import PackageCreate, PackageResponse, SignPackageRequest, SignPackageResponse
from esign.packages.services.package_service import PackageService

router = APIRouter()


def get_package_service(
    db: Session = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
    audit: AuditLogger = Depends(get_audit)
) -> PackageService:
    return PackageService(db, storage, audit)


@router.post("", response_model=PackageResponse, status_code=status.HTTP_201_CREATED)
def create_package(user_id: int, payload: PackageCreate, service: PackageService = Depends(get_package_service)):
    return service.create_package(user_id, payload.title, payload.document_ids)


@router.get("/{package_id}", response_model=PackageResponse)
def get_package(package_id: int, user_id: int, service: PackageService = Depends(get_package_service)):
    return service.get_package_details(package_id, user_id)


@router.post("/{package_id}/sign", response_model=SignPackageResponse)
def sign_package(
    package_id: int,
    user_id: int,
    payload: SignPackageRequest,
    context: dict = Depends(request_context),
    service: PackageService = Depends(get_package_service)
):
    """
    Signs every document of the package. A partial failure is not an
    error: inspect ``failed`` and sign again to retry those documents.
    """
    return service.sign_package(
        package_id,
        user_id,
        [sig.model_dump() for sig in payload.signatures],
        ip_address=context["ip_address"],
        user_agent=context["user_agent"],
    )
