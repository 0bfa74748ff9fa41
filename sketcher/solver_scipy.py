"""
CadKernel Sketcher - SciPy Backend
Alternativer Solver mit scipy.optimize.least_squares

Aktiviert über ``set_flag("solver_backend", "scipy")``. Variablen sind die
Koordinaten aller freien Punkte sowie Radien der referenzierten Kreise;
Residuen sind dieselben wie beim Relaxations-Solver.
"""

from typing import List, Optional

import numpy as np
from loguru import logger
from scipy.optimize import least_squares

from config.tolerances import Tolerances
from .constraints import ConstraintStatus, ConstraintType
from .geometry import Circle2D
from .solver import SolverResult, evaluate_constraints


_RADIUS_TYPES = (ConstraintType.RADIUS, ConstraintType.TANGENT, ConstraintType.POINT_ON_CIRCLE)


class ScipyConstraintSolver:
    """
    Least-Squares-Solver (Trust Region Reflective) über dieselben Residuen.

    Eine schwache Regularisierung hält die Lösung nahe am Startzustand,
    damit unterbestimmte Systeme nicht beliebig wandern.
    """

    def __init__(self, tolerance: float = None, regularization: float = 1e-4, method: str = "trf"):
        self.tolerance = tolerance if tolerance is not None else Tolerances.SOLVER_EPSILON
        self.regularization = regularization
        self.method = method

    def _collect_variables(self, constraints: List):
        refs = []  # (Objekt, Attributname)
        seen = set()
        for c in constraints:
            for p in c.involved_points():
                if p.fixed or id(p) in seen:
                    continue
                seen.add(id(p))
                refs.append((p, "x"))
                refs.append((p, "y"))
            # Bemaßungen wirken über ihren äquivalenten Constraint
            inner = c.as_constraint() if hasattr(c, "as_constraint") else c
            if inner is not None and inner.type in _RADIUS_TYPES:
                circle = next((e for e in inner.entities if isinstance(e, Circle2D)), None)
                if circle is not None and id(circle) not in seen:
                    seen.add(id(circle))
                    refs.append((circle, "radius"))
        return refs

    def solve(self, constraints: List, max_iter: Optional[int] = None, dof: int = 0) -> SolverResult:
        if not constraints:
            return SolverResult(True, 0, 0.0, ConstraintStatus.UNDER_CONSTRAINED, "Keine Constraints",
                                dof=dof, backend="scipy")

        refs = self._collect_variables(constraints)
        if not refs:
            total, max_error = evaluate_constraints(constraints, self.tolerance)
            ok = total < self.tolerance ** 2
            status = ConstraintStatus.FULLY_CONSTRAINED if ok else ConstraintStatus.INCONSISTENT
            return SolverResult(ok, 0, total, status, "Keine Variablen", max_error=max_error,
                                dof=dof, backend="scipy")

        x0 = np.array([getattr(obj, attr) for obj, attr in refs], dtype=np.float64)

        def write_back(x):
            for i, (obj, attr) in enumerate(refs):
                setattr(obj, attr, float(x[i]))

        def error_function(x):
            write_back(x)
            residuals = []
            for c in constraints:
                residuals.extend(c.residuals())
            residuals.extend((x - x0) * self.regularization)
            return np.nan_to_num(np.asarray(residuals, dtype=np.float64), nan=1e6, posinf=1e6, neginf=-1e6)

        max_nfev = None if max_iter is None else max(1, int(max_iter)) * (len(refs) + 1)
        try:
            result = least_squares(error_function, x0, method=self.method,
                                   ftol=1e-12, xtol=1e-12, gtol=1e-12, max_nfev=max_nfev)
        except (ValueError, np.linalg.LinAlgError) as e:
            write_back(x0)
            logger.warning(f"[Solver] SciPy-Fehler: {e}")
            return SolverResult(False, 0, float("inf"), ConstraintStatus.INCONSISTENT, f"Solver-Fehler: {e}",
                                dof=dof, backend="scipy")

        write_back(result.x)
        total, max_error = evaluate_constraints(constraints, self.tolerance)
        success = total < self.tolerance ** 2
        if success:
            status = ConstraintStatus.FULLY_CONSTRAINED if dof <= 0 else ConstraintStatus.UNDER_CONSTRAINED
            message = f"Konvergiert (Fehler: {total:.2e})"
        else:
            status = ConstraintStatus.INCONSISTENT
            message = f"Nicht konvergiert (Status: {result.status}, Σr²={total:.2e})"
        return SolverResult(
            success=bool(success),
            iterations=int(result.nfev),
            final_error=float(total),
            status=status,
            message=message,
            max_error=float(max_error),
            dof=dof,
            backend="scipy",
        )
