from .package import Package, PackageDocument, PackageSignature, PackageStatus

__all__ = ['Package', 'PackageDocument', 'PackageSignature', 'PackageStatus']
