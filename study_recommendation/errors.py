from __future__ import annotations

from typing import Optional


class RecommendationError(Exception):
    """추천 엔진에서 발생하는 모든 에러의 base."""


class DataUnavailableError(RecommendationError):
    """
    필수 provider 호출이 실패한 경우.
    generation pass 전체가 실패하며 부분 결과는 반환하지 않는다.
    """

    def __init__(self, source: str, message: Optional[str] = None):
        self.source = source
        super().__init__(message or f"required data unavailable: {source}")


class NotFoundError(RecommendationError, LookupError):
    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class InvalidFeedbackError(RecommendationError, ValueError):
    pass


class PersistenceWarning(UserWarning):
    """생성은 성공했지만 store 저장에 실패한 경우 (non-fatal)."""
