"""
studysync: 성경공부 주차별 활성 토론 질문 실시간 동기화
"""

__version__ = "0.1.0"
