"""
Analytics error types.

The HTTP layer maps these onto status codes; analyzers never build HTTP
responses themselves.
"""

from typing import Optional


class AnalyticsError(Exception):
    """Base class for analytics failures"""


class EntityNotFoundError(AnalyticsError):
    """A referenced entity does not exist or belongs to another tenant"""

    def __init__(self, entity: str, entity_id: str, tenant_id: Optional[str] = None):
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id
        self.tenant_id = tenant_id


class AnalyzerTimeoutError(AnalyticsError):
    """An aggregation ran past its timeout"""

    def __init__(self, analyzer: str, timeout_seconds: float):
        super().__init__(f"Analyzer '{analyzer}' timed out after {timeout_seconds}s")
        self.analyzer = analyzer
        self.timeout_seconds = timeout_seconds
