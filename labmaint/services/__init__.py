"""Service graph for the lab maintenance engine."""

from dataclasses import dataclass

from labmaint.config import Settings, get_settings
from labmaint.services.alerts import AlertEngine, NotificationCenter
from labmaint.services.consumption import ConsumptionCoordinator
from labmaint.services.fault_reports import FaultReportRegistry
from labmaint.services.inventory import InventoryStore
from labmaint.services.machines import MachineRegistry
from labmaint.services.maintenance import MaintenanceRegistry
from labmaint.services.reports import ReportAggregator
from labmaint.services.usage import UsageLedger
from labmaint.services.wear_parts import WearPartTracker
from labmaint.state.locks import KeyedLocks
from labmaint.state.manager import StateManager


@dataclass
class Services:
    """Wired collaborators sharing one state manager and one lock table."""

    state: StateManager
    locks: KeyedLocks
    inventory: InventoryStore
    machines: MachineRegistry
    maintenance: MaintenanceRegistry
    ledger: UsageLedger
    notifications: NotificationCenter
    alerts: AlertEngine
    tracker: WearPartTracker
    consumption: ConsumptionCoordinator
    reports: ReportAggregator
    fault_reports: FaultReportRegistry


def build_services(state_manager: StateManager, settings: Settings | None = None) -> Services:
    """Build a fresh service graph over a state manager."""
    settings = settings or get_settings()
    locks = KeyedLocks(state_manager)

    inventory = InventoryStore(state_manager, locks)
    machines = MachineRegistry(state_manager)
    maintenance = MaintenanceRegistry(state_manager, locks, machines)
    ledger = UsageLedger(state_manager)
    notifications = NotificationCenter(state_manager)
    alerts = AlertEngine(notifications)
    tracker = WearPartTracker(
        state_manager,
        locks,
        machines,
        inventory,
        alerts,
        warning_pct=settings.warning_threshold_pct,
        critical_pct=settings.critical_threshold_pct,
    )
    consumption = ConsumptionCoordinator(
        state_manager, locks, inventory, maintenance, machines, ledger, tracker, alerts
    )
    fault_reports = FaultReportRegistry(state_manager, locks, machines)
    reports = ReportAggregator(
        machines,
        maintenance,
        consumption,
        ledger,
        inventory,
        tracker,
        months=settings.report_months,
        warning_pct=settings.warning_threshold_pct,
        critical_pct=settings.critical_threshold_pct,
    )

    return Services(
        state=state_manager,
        locks=locks,
        inventory=inventory,
        machines=machines,
        maintenance=maintenance,
        ledger=ledger,
        notifications=notifications,
        alerts=alerts,
        tracker=tracker,
        consumption=consumption,
        reports=reports,
        fault_reports=fault_reports,
    )


__all__ = [
    "AlertEngine",
    "ConsumptionCoordinator",
    "FaultReportRegistry",
    "InventoryStore",
    "MachineRegistry",
    "MaintenanceRegistry",
    "NotificationCenter",
    "ReportAggregator",
    "Services",
    "UsageLedger",
    "WearPartTracker",
    "build_services",
]
