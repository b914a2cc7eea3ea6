"""正常金属：只有扩散项，超导关联完全由边界（近邻效应）引入。"""

from __future__ import annotations

from .base import Material

__all__ = ["Metal"]


class Metal(Material):
    """扩散正常金属层，``Metal(positions, energies, thouless=1.0, **kwargs)``。"""

    kind = "metal"
