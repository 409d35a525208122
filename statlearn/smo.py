"""
SMO (Sequential Minimal Optimization) - 쌍대 이차계획 풀이기
==========================================================

다음 형태의 볼록 이차계획을 두 변수씩 갱신하며 풉니다.

    min_α  f(α) = (1/2) αᵀQα + pᵀα
    s.t.   yᵀα = 0,   0 <= α_i <= C_i,   y_i ∈ {+1, -1}

C-SVC:  Q_ij = y_i y_j K(x_i, x_j),  p = -1
ε-SVR:  2n개 변수, Q = [[K, -K], [-K, K]],  p = [ε - y; ε + y]

알고리즘:
--------
1. 그래디언트 G = Qα + p 유지 (초기 α = 0 이므로 G = p)
2. 작업 집합 선택 (2차 정보 기반 최대 위반 쌍):
   I_up  = {t | y_t=+1, α_t<C} ∪ {t | y_t=-1, α_t>0}
   I_low = {t | y_t=+1, α_t>0} ∪ {t | y_t=-1, α_t<C}
   i = argmax_{t∈I_up} -y_t G_t
   j = argmin_{t∈I_low, b_it>0} -b_it² / a_it
   여기서 b_it = -y_i G_i + y_t G_t,  a_it = Q_ii + Q_tt - 2 y_i y_t Q_it
3. 두 변수의 해석적 최적 갱신 후 상자 제약 [0, C]로 잘라냄
4. KKT 위반량 m(α) - M(α) < tol 이면 종료

절편:
    ρ = 자유 변수(0 < α_i < C)의 y_i G_i 평균
        (자유 변수가 없으면 상/하한 범위의 중점)

Author: ML From Scratch Project
"""

import warnings
from dataclasses import dataclass

import numpy as np

from .exceptions import DegenerateInput, InfeasibleDual

TAU = 1e-12


@dataclass(frozen=True, eq=False)
class SMOResult:
    """쌍대 풀이 결과"""
    alpha: np.ndarray
    rho: float
    objective: float
    n_iter: int
    converged: bool
    kkt_gap: float


def solve_smo(
    Q: np.ndarray,
    p: np.ndarray,
    y: np.ndarray,
    C: np.ndarray,
    tol: float = 1e-3,
    max_iter: int = 100000,
    verbose: int = 0
) -> SMOResult:
    """
    SMO로 쌍대 문제 풀이

    Parameters
    ----------
    Q : ndarray of shape (l, l)
        부호가 반영된 커널 행렬
    p : ndarray of shape (l,)
        선형 항
    y : ndarray of shape (l,)
        +1 / -1 부호
    C : ndarray of shape (l,)
        변수별 상한
    tol : float
        KKT 위반 허용오차
    max_iter : int
        최대 갱신 횟수. 도달하면 InfeasibleDual 경고 후 현재 해 반환

    Returns
    -------
    result : SMOResult
    """
    Q = np.asarray(Q, dtype=float)
    p = np.asarray(p, dtype=float)
    y = np.asarray(y, dtype=float)
    C = np.asarray(C, dtype=float)
    l = len(p)

    if Q.shape != (l, l) or len(y) != l or len(C) != l:
        raise DegenerateInput(f"SMO 입력 차원이 일치하지 않습니다: Q={Q.shape}, l={l}")
    if not (np.any(y > 0) and np.any(y < 0)):
        raise DegenerateInput("두 부호(+1, -1)의 변수가 모두 필요합니다.")

    QD = np.diag(Q).copy()
    alpha = np.zeros(l)
    G = p.copy()

    pos = y > 0
    n_iter = 0
    kkt_gap = np.inf
    converged = False

    while True:
        # 작업 집합 선택
        up = (pos & (alpha < C)) | (~pos & (alpha > 0))
        low = (pos & (alpha > 0)) | (~pos & (alpha < C))

        yG = y * G
        neg_yG_up = np.where(up, -yG, -np.inf)
        i = int(np.argmax(neg_yG_up))
        Gmax = neg_yG_up[i]
        Gmax2 = np.max(np.where(low, yG, -np.inf))
        kkt_gap = Gmax + Gmax2

        if kkt_gap < tol:
            converged = True
            break

        if n_iter >= max_iter:
            break

        grad_diff = Gmax + yG
        quad_coef = QD[i] + QD - 2.0 * y[i] * y * Q[i]
        quad_coef = np.where(quad_coef > 0, quad_coef, TAU)
        obj_diff = np.where(low & (grad_diff > 0), -(grad_diff ** 2) / quad_coef, np.inf)
        j = int(np.argmin(obj_diff))

        if not np.isfinite(obj_diff[j]):
            # 개선 가능한 쌍이 없음
            converged = True
            break

        old_ai, old_aj = alpha[i], alpha[j]
        Ci, Cj = C[i], C[j]

        if y[i] != y[j]:
            a = QD[i] + QD[j] + 2.0 * Q[i, j]
            if a <= 0:
                a = TAU
            delta = (-G[i] - G[j]) / a
            diff = alpha[i] - alpha[j]
            alpha[i] += delta
            alpha[j] += delta
            if diff > 0:
                if alpha[j] < 0:
                    alpha[j] = 0.0
                    alpha[i] = diff
            else:
                if alpha[i] < 0:
                    alpha[i] = 0.0
                    alpha[j] = -diff
            if diff > Ci - Cj:
                if alpha[i] > Ci:
                    alpha[i] = Ci
                    alpha[j] = Ci - diff
            else:
                if alpha[j] > Cj:
                    alpha[j] = Cj
                    alpha[i] = Cj + diff
        else:
            a = QD[i] + QD[j] - 2.0 * Q[i, j]
            if a <= 0:
                a = TAU
            delta = (G[i] - G[j]) / a
            total = alpha[i] + alpha[j]
            alpha[i] -= delta
            alpha[j] += delta
            if total > Ci:
                if alpha[i] > Ci:
                    alpha[i] = Ci
                    alpha[j] = total - Ci
            else:
                if alpha[j] < 0:
                    alpha[j] = 0.0
                    alpha[i] = total
            if total > Cj:
                if alpha[j] > Cj:
                    alpha[j] = Cj
                    alpha[i] = total - Cj
            else:
                if alpha[i] < 0:
                    alpha[i] = 0.0
                    alpha[j] = total

        # 그래디언트 갱신
        G += Q[i] * (alpha[i] - old_ai) + Q[j] * (alpha[j] - old_aj)
        n_iter += 1

        if verbose > 1 and n_iter % 1000 == 0:
            print(f"SMO 반복 {n_iter}: KKT 위반량={kkt_gap:.6f}")

    if not converged:
        warnings.warn(
            f"SMO가 {max_iter}회 내에 수렴하지 않았습니다 "
            f"(KKT 위반량={kkt_gap:.3e} >= {tol}). 현재 해를 반환합니다.",
            InfeasibleDual
        )

    rho = _calculate_rho(alpha, G, y, C)
    objective = 0.5 * float(alpha @ (G + p))

    if verbose > 0:
        print(f"SMO 완료: 반복={n_iter}, 목적함수={objective:.6f}, rho={rho:.6f}")

    return SMOResult(
        alpha=alpha,
        rho=rho,
        objective=objective,
        n_iter=n_iter,
        converged=converged,
        kkt_gap=float(kkt_gap)
    )


def _calculate_rho(
    alpha: np.ndarray,
    G: np.ndarray,
    y: np.ndarray,
    C: np.ndarray
) -> float:
    """자유 변수에서 절편 추정 (없으면 범위 중점)"""
    yG = y * G
    at_upper = alpha >= C
    at_lower = alpha <= 0
    free = ~at_upper & ~at_lower

    if np.any(free):
        return float(np.mean(yG[free]))

    pos = y > 0
    # 상한: (y=-1, α=C) 또는 (y=+1, α=0) 의 yG 최소값
    ub_mask = (at_upper & ~pos) | (at_lower & pos)
    # 하한: (y=+1, α=C) 또는 (y=-1, α=0) 의 yG 최대값
    lb_mask = (at_upper & pos) | (at_lower & ~pos)
    ub = np.min(yG[ub_mask]) if np.any(ub_mask) else np.inf
    lb = np.max(yG[lb_mask]) if np.any(lb_mask) else -np.inf

    if not np.isfinite(ub) or not np.isfinite(lb):
        return float(ub if np.isfinite(ub) else lb)
    return float((ub + lb) / 2)
