from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum


class BackgroundMode(Enum):
    BLUR = "Blur"
    BLACK = "Black"
    WHITE = "White"
    GRADIENT = "Gradient"
    CUSTOM_IMAGE = "Custom Image"

    @property
    def display_name(self) -> str:
        return self.value

    @classmethod
    def from_name(cls, name: str) -> "BackgroundMode":
        """Parses CLI/config spellings: 'blur', 'gradient', 'image', 'custom_image'..."""
        key = name.strip().lower().replace("-", "_").replace(" ", "_")
        if key == "image":
            key = "custom_image"
        for mode in cls:
            if mode.name.lower() == key:
                return mode
        raise ValueError(f"Unknown background mode: {name!r}")


@dataclass(frozen=True)
class Selection:
    mode: BackgroundMode = BackgroundMode.BLUR
    debug_mask: bool = False


@dataclass(frozen=True)
class Command:
    """A partial update to the selection; None fields leave the value alone."""

    mode: BackgroundMode | None = None
    debug_mask: bool | None = None

    def merge(self, newer: "Command") -> "Command":
        return Command(
            mode=newer.mode if newer.mode is not None else self.mode,
            debug_mask=(
                newer.debug_mask if newer.debug_mask is not None else self.debug_mask
            ),
        )

    def apply(self, selection: Selection) -> Selection:
        if self.mode is not None:
            selection = replace(selection, mode=self.mode)
        if self.debug_mask is not None:
            selection = replace(selection, debug_mask=self.debug_mask)
        return selection
