"""클라이언트 상태 저장소"""
from .highlights import HighlightStore

__all__ = ["HighlightStore"]
