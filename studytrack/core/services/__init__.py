from studytrack.core.services.container import ServiceContainer

__all__ = ["ServiceContainer"]
