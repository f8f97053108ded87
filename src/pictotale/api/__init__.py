"""HTTP surface for PictoTale."""

from .routes import api, register_routes

__all__ = ['api', 'register_routes']
