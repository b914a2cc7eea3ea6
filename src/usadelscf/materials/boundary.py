r"""材料两端的边界条件变体
==========================

- :class:`Free`：自由端，:math:`\partial\gamma=\partial\tilde\gamma=0`；
- :class:`Interface`：与相邻材料（共享引用，不拥有）之间的 Kupriyanov–Lukichev 界面；
- :class:`Fixed`：每个能量给定的边界态序列，按连续性匹配，或给出透明度时按
  Kupriyanov–Lukichev 条件匹配（例如与体超导体相接）。

相邻材料的生命周期由驱动方管理；在某个材料 ``update_state()`` 期间，被引用的
材料只读。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Sequence, Union

from ..state import State

if TYPE_CHECKING:
    from .base import Material

__all__ = [
    "Free",
    "Interface",
    "Fixed",
    "Boundary",
]


@dataclass(frozen=True)
class Free:
    """自由（零导数）边界。"""

    def neighbour_state(self, index: int, side: str) -> State | None:
        return None


@dataclass(frozen=True, eq=False)
class Interface:
    r"""与相邻材料的界面。

    Attributes
    ----------
    material : Material
        相邻材料；左界面取其最右端的态，右界面取其最左端的态。
    transparency : float
        界面参数 :math:`\zeta = R_B/R`（越大越不透明），需为正。
    """

    material: "Material"
    transparency: float = 1.0

    def __post_init__(self):
        if self.transparency <= 0:
            raise ValueError("界面参数 transparency 必须为正")

    def neighbour_state(self, index: int, side: str) -> State:
        states = self.material.states
        return states[-1, index] if side == "left" else states[0, index]


@dataclass(eq=False)
class Fixed:
    r"""给定的边界态序列（长度等于能量数）。

    Attributes
    ----------
    states : sequence of State
        每个能量对应的边界态。
    transparency : float | None
        ``None`` 表示直接连续匹配 :math:`\gamma=\gamma_b`；给定正数时按
        Kupriyanov–Lukichev 条件与该态耦合。
    """

    states: Sequence[State] = field(default_factory=tuple)
    transparency: float | None = None

    def __post_init__(self):
        self.states = tuple(self.states)
        if any(not isinstance(s, State) for s in self.states):
            raise ValueError("Fixed.states 中每个元素都必须是 State")
        if self.transparency is not None and self.transparency <= 0:
            raise ValueError("界面参数 transparency 必须为正")

    @classmethod
    def bulk(cls, energies, gap: float, transparency: float | None = None, **kwargs) -> "Fixed":
        """以 BCS 体态作为边界（与体超导体相接）。"""
        return cls([State.bulk(e, gap, **kwargs) for e in energies], transparency)

    def neighbour_state(self, index: int, side: str) -> State:
        return self.states[index]


Boundary = Union[Free, Interface, Fixed]
