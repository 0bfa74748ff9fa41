"""
CadKernel Sketcher - Constraint Solver
Iterative projektive Relaxation ohne Jacobi-Matrix

Jeder Constraint kennt eine geschlossene Korrektur (``Constraint.apply``),
die sein Residuum verkleinert. Der Solver wendet die Korrekturen in
Einfügereihenfolge an, bis Σr² < ε² gilt oder max_iter erreicht ist.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence
import math

from loguru import logger

from config.feature_flags import is_enabled
from config.tolerances import Tolerances
from .constraints import ConstraintStatus


@dataclass
class SolverResult:
    """Ergebnis des Constraint-Solvers"""
    success: bool
    iterations: int
    final_error: float
    status: ConstraintStatus
    message: str = ""
    max_error: float = 0.0
    dof: int = 0
    backend: str = "relaxation"

    @property
    def converged(self) -> bool:
        return self.success

    @property
    def is_converged(self) -> bool:
        return self.success


def constraint_error_sq(constraint) -> float:
    """Σr² über alle Residuen eines Constraints"""
    return sum(r * r for r in constraint.residuals())


def evaluate_constraints(constraints: Sequence, tolerance: float) -> tuple:
    """Gesamtfehler Σr², maximaler Einzelfehler; setzt ``satisfied``."""
    total = 0.0
    max_error = 0.0
    for c in constraints:
        err_sq = constraint_error_sq(c)
        total += err_sq
        err = math.sqrt(err_sq)
        max_error = max(max_error, err)
        if hasattr(c, "satisfied"):
            c.satisfied = err < tolerance
    return total, max_error


class ConstraintSolver:
    """
    Relaxations-Solver über die Punkt-Koordinaten einer Scene.

    Fixe Punkte werden von den Korrekturen nie bewegt. Bei Konflikten gewinnt
    innerhalb einer Iteration der später eingefügte Constraint.
    """

    def __init__(self, tolerance: float = None, max_iterations: int = None, relaxation: float = None):
        self.tolerance = tolerance if tolerance is not None else Tolerances.SOLVER_EPSILON
        self.max_iterations = max_iterations if max_iterations is not None else Tolerances.SOLVER_MAX_ITER
        omega = relaxation if relaxation is not None else Tolerances.SOLVER_RELAXATION
        self.relaxation = min(1.0, max(Tolerances.SOLVER_MIN_RELAXATION, omega))

    def solve(self, constraints: List, max_iter: Optional[int] = None, dof: int = 0) -> SolverResult:
        """
        Löst das Constraint-System (blockierend, ohne Abbruch von außen).

        Args:
            constraints: Constraints in Einfügereihenfolge
            max_iter: Iterationsgrenze (Standard: Tolerances.SOLVER_MAX_ITER)
            dof: Freiheitsgrade laut Scene, nur für den Status

        Returns:
            SolverResult; Nicht-Konvergenz ist kein Fehler
        """
        max_iter = self.max_iterations if max_iter is None else max(0, int(max_iter))
        eps = self.tolerance
        debug = is_enabled("solver_debug")

        if not constraints:
            return SolverResult(True, 0, 0.0, ConstraintStatus.UNDER_CONSTRAINED, "Keine Constraints", dof=dof)

        converged = False
        iterations = 0
        for iteration in range(1, max_iter + 1):
            iterations = iteration
            total_error = 0.0
            for c in constraints:
                err_sq = constraint_error_sq(c)
                if math.sqrt(err_sq) < eps:
                    continue
                c.apply(self.relaxation)
                total_error += err_sq
            if debug:
                logger.debug(f"[Solver] Iteration {iteration}: Σr²={total_error:.3e}")
            if total_error < eps * eps:
                converged = True
                break

        final_error, max_error = evaluate_constraints(constraints, eps)
        # Letzte Korrektur kann knapp über ε landen; der Endzustand entscheidet
        converged = converged or final_error < eps * eps

        if converged:
            if dof <= 0:
                status = ConstraintStatus.FULLY_CONSTRAINED
                message = f"Vollständig bestimmt (Fehler: {final_error:.2e})"
            else:
                status = ConstraintStatus.UNDER_CONSTRAINED
                message = f"Unterbestimmt ({dof} Freiheitsgrade)"
        else:
            status = ConstraintStatus.INCONSISTENT
            message = f"Nicht konvergiert nach {iterations} Iterationen (Σr²={final_error:.2e}, Max: {max_error:.2e})"
            logger.debug(f"[Solver] {message}")

        return SolverResult(
            success=converged,
            iterations=iterations,
            final_error=final_error,
            status=status,
            message=message,
            max_error=max_error,
            dof=dof,
        )
