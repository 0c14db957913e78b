"""
AppLib - Drawing book workflow

This module ties the canvas, history, services, narration and video
libraries together into the DrawingBookSession controller.
"""

from DB_Libs.AppLib.drawing_book_session import DrawingBookSession

__all__ = ["DrawingBookSession"]
