from .routes import teams_bp

__all__ = ["teams_bp"]
