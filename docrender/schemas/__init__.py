from .render import ErrorResponse, HealthCheck, HealthResponse, RenderRequest

__all__ = ["ErrorResponse", "HealthCheck", "HealthResponse", "RenderRequest"]
