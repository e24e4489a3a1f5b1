"""
Domain errors raised by the approval pipeline and stores.
"""


class NotFoundError(LookupError):
    """A referenced record does not exist."""

    entity = "Record"

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"{self.entity} {record_id} not found")


class DocumentNotFoundError(NotFoundError):
    entity = "Document"


class ProductNotFoundError(NotFoundError):
    entity = "Product"


class SupplierNotFoundError(NotFoundError):
    entity = "Supplier"


class AnomalyNotFoundError(NotFoundError):
    entity = "Anomaly"
