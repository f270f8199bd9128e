from __future__ import annotations

from typing import Sequence

from PIL import Image

from slice_tileset import TILE_INSET, TILE_SIZE


def make_tileset(colors: Sequence[Sequence[tuple[int, int, int]]],
                 tile_size: int = TILE_SIZE, pad: int = TILE_INSET) -> Image.Image:
    """Build an RGBA tilemap from colors[index_x][index_y].

    `pad` extra pixels on the right/bottom keep the inset crop of the last
    row/column inside the image.
    """
    cols = len(colors)
    rows = len(colors[0]) if cols else 0
    img = Image.new("RGBA", (cols * tile_size + pad, rows * tile_size + pad), (0, 0, 0, 255))
    for index_x, column in enumerate(colors):
        for index_y, rgb in enumerate(column):
            x0 = index_x * tile_size
            y0 = index_y * tile_size
            # fill the inset region the slicer reads
            box = (x0 + TILE_INSET, y0 + TILE_INSET,
                   x0 + TILE_INSET + tile_size, y0 + TILE_INSET + tile_size)
            img.paste((*rgb, 255), box)
    return img


class ScriptedOperator:
    """Stands in for `input`: replays answers and records every prompt."""

    def __init__(self, answers: Sequence[str] = ()):
        self.answers = list(answers)
        self.prompts: list[str] = []

    def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.answers:
            raise AssertionError(f"Unexpected prompt: {prompt!r}")
        return self.answers.pop(0)
