"""
CaptureLib - Webcam capture

This module grabs still photos from the webcam for the photo-to-outline path.
"""

from DB_Libs.CaptureLib.webcam_capture import WebcamCapture, capture_still_frame

__all__ = ["WebcamCapture", "capture_still_frame"]
