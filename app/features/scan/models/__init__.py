"""
Scan models package.
"""
from app.features.scan.models.scan_record import ScanRecordRow

__all__ = ["ScanRecordRow"]
