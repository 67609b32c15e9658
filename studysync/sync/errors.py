"""동기화 계층 예외. 선택기/폴러가 잡아서 하위 모드로 전환하고 로그만 남긴다."""


class SyncError(Exception):
    """동기화 계층 기본 예외"""


class NegotiationError(SyncError):
    """협상 엔드포인트 호출 실패 (네트워크 오류, 비정상 응답)"""


class ChannelConnectError(SyncError):
    """라이브 채널 연결 실패"""


class PersistenceError(SyncError):
    """하이라이트 저장/조회 실패"""
