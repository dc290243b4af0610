from connector.api.routes import connect, health

__all__ = ["connect", "health"]
