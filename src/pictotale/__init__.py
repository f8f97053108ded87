"""
PictoTale - children's story generation pipeline.

Turns a drawing, a voice recording and/or a short prompt into a narrated,
optionally illustrated children's story.
"""

__version__ = "0.1.0"
