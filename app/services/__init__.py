# Services module
from app.services.order_sequence_service import OrderSequenceService
from app.services.order_store import OrderStore
from app.services.order_state_machine import OrderStateMachine
from app.services.order_service import OrderService
from app.services.partition_registry import PartitionRegistry, normalize_partition_name
from app.services.catalog_service import CatalogService
from app.services.category_service import CategoryService

__all__ = [
    "OrderSequenceService",
    "OrderStore",
    "OrderStateMachine",
    "OrderService",
    # Catalog
    "PartitionRegistry",
    "normalize_partition_name",
    "CatalogService",
    "CategoryService",
]
