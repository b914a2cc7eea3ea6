"""材料层：公共基类、边界条件与三种材料变体。"""

from .base import Material, SolveContext, pairing_term
from .boundary import Boundary, Fixed, Free, Interface
from .ferromagnet import Ferromagnet
from .metal import Metal
from .superconductor import Superconductor, bcs_gap_integral, bcs_singlet, thermal_factor

__all__ = [
    "Material",
    "SolveContext",
    "pairing_term",
    "Boundary",
    "Free",
    "Interface",
    "Fixed",
    "Superconductor",
    "Metal",
    "Ferromagnet",
    "thermal_factor",
    "bcs_singlet",
    "bcs_gap_integral",
]
