# models package init
# Ensure ORM models are importable from a single place.
from factory_events.models.machine_event import MachineEventDB  # noqa: F401
