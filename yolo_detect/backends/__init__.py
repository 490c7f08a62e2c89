"""
Optional inference backends for yolo_detect.

Backends live in their own subpackage so decoding and suppression can be
used without installing an inference runtime.
"""

from __future__ import annotations

__all__ = []
