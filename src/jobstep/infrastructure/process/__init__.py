"""External process supervision."""

from jobstep.infrastructure.process.supervisor import ProcessSupervisor, SupervisorTick

__all__ = ["ProcessSupervisor", "SupervisorTick"]
