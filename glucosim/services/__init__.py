# Services
from glucosim.services.demo_data import (
    DemoDataService,
    DemoModeDisabledError,
    RegenerationInProgressError,
    RegenerationSummary,
    ServiceState,
    get_demo_service,
)
from glucosim.services.demo_storage import (
    DEMO_DATA_SOURCE,
    DemoDataStore,
    SqlAlchemyDemoStore,
    StorageError,
)
from glucosim.services.scheduler import (
    generate_demo_entry,
    get_scheduler,
    start_scheduler,
    stop_scheduler,
)

__all__ = [
    "DEMO_DATA_SOURCE",
    "DemoDataService",
    "DemoDataStore",
    "DemoModeDisabledError",
    "RegenerationInProgressError",
    "RegenerationSummary",
    "ServiceState",
    "SqlAlchemyDemoStore",
    "StorageError",
    "generate_demo_entry",
    "get_demo_service",
    "get_scheduler",
    "start_scheduler",
    "stop_scheduler",
]
