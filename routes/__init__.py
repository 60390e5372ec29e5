"""
Blood Request Desk Routes Package
"""

from .recipients import router as recipients_router

__all__ = ['recipients_router']
