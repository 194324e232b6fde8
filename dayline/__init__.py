"""Offline-first sync core of the Dayline task and time tracker."""
from dayline.app import Dayline, create_app

__all__ = ["Dayline", "create_app"]
