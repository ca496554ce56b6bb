"""Capture module - screen grabbing with MSS."""

from .screen_capture import ScreenCapture

__all__ = ["ScreenCapture"]
