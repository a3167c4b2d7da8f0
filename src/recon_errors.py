from typing import List, Optional


class ReconcileError(Exception):
    """Base class for reconciliation failures raised to the caller."""


class UnsupportedFormat(ReconcileError):
    def __init__(self, file_name: str):
        self.file_name = file_name
        super().__init__(f"Unsupported file type: {file_name} (expected .csv, .xlsx or .xlsm)")


class FileReadError(ReconcileError):
    def __init__(self, file_name: str, cause: Exception):
        self.file_name = file_name
        self.cause = cause
        super().__init__(f"Cannot read {file_name}: {cause}")


class NoActionableRows(ReconcileError):
    def __init__(self, file_name: str, headers: List[str]):
        self.file_name = file_name
        self.headers = list(headers)
        found = " | ".join(self.headers)
        super().__init__(
            f"Missing required column(s): orderNumber or trackingNumber. Found headers: {found}"
        )


class ConfigurationError(ReconcileError):
    """Order-management connectivity or credentials are not configured."""


class OrderTrackError(ReconcileError):
    def __init__(self, url: str, message: str, status: Optional[int] = None):
        self.url = url
        self.status = status
        super().__init__(f"{url}: {message}" + (f" (status {status})" if status else ""))
