"""
예외 및 경고 클래스
===================

구조적 오류(차원 불일치, NaN, 특이 행렬 등)는 즉시 예외로 발생시키고,
반복 상한 도달과 같은 비치명적 상태는 경고로 보고합니다.
경고가 발생해도 알고리즘은 최선의 해를 반환하며 converged 플래그로 표시합니다.

Author: ML From Scratch Project
"""

from typing import Optional


class StatLearnError(Exception):
    """statlearn 예외의 기본 클래스"""


class InvalidModelSpec(StatLearnError, ValueError):
    """
    비교 불가능한 모델, 알 수 없는 기준/방향/규칙/커널, 존재하지 않는 피처 이름

    AIC/BIC 비교는 동일한 반응변수와 동일한 관측치 집합에 적합된
    모델들 사이에서만 유효합니다.
    """


class DegenerateInput(StatLearnError, ValueError):
    """
    분산이 0인 피처, 특이 설계 행렬, 차원 불일치, NaN/Inf 입력

    reason은 선택적 분류 태그입니다 ('singular', 'perfect_fit', 'too_few' 등).
    """

    def __init__(self, message: str = '', reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason


class NonConvergence(UserWarning):
    """좌표 하강법이 반복 상한에 도달 (비치명적)"""


class InfeasibleDual(UserWarning):
    """SMO가 반복 상한 내에 KKT 허용오차를 만족하지 못함 (비치명적)"""
