"""Input staging."""

from jobstep.infrastructure.resources.stager import LocalResourceStager

__all__ = ["LocalResourceStager"]
