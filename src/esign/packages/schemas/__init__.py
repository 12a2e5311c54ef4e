from .package_schemas import (
    PackageCreate, PackageResponse, PackageDocumentResponse, PackageSignatureInput,
    SignPackageRequest, SignPackageResponse, FailedDocument
)
