from __future__ import annotations

import enum

import torch


class Backing(enum.Enum):
    """Where the index storage of a one-hot array lives."""

    Host = enum.auto()
    Accelerator = enum.auto()

    @classmethod
    def from_device(cls, device: torch.device | str) -> Backing:
        """Get the backing kind of a pytorch device."""
        match torch.device(device).type:
            case "cpu":
                return Backing.Host
            case _:
                return Backing.Accelerator

    def host_addressable(self) -> bool:
        """Whether arbitrary Python objects can be looked up with indices from this backing."""
        match self:
            case Backing.Host:
                return True
            case Backing.Accelerator:
                return False
