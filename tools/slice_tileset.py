#!/usr/bin/env python3
"""
slice_tileset.py - Slice a tilemap image into grid tiles and classify each
tile by average color against a persisted dictionary of known tile types.

Tiles whose color signature is not yet known are written out as a reference
PNG and the operator is asked to name them (plus wall/transition flags).
Every classified tile ends up in a JSON manifest together with its PNG bytes.

Usage:
    python tools/slice_tileset.py                      # tileset_in.png -> tileset.json
    python tools/slice_tileset.py map.png --tile-size 32 -o map_tiles.json

Files:
    tile_dictionary.json   signature -> {name, is_transition, is_wall}
                           (read at start, rewritten after every cell)
    tileset.json           manifest of every classified tile (written at end)
    <x>_<y>_tile.png       reference crop for each newly discovered type

Dependencies: Pillow
"""

import argparse
import io
import json
import math
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator

from PIL import Image, ImageStat

# ─── Configuration ──────────────────────────────────────────────────────────

DEFAULT_INPUT = "tileset_in.png"
DEFAULT_DICTIONARY = "tile_dictionary.json"
DEFAULT_OUTPUT = "tileset.json"

TILE_SIZE = 48
TILE_INSET = 1  # skip the grid line drawn along each tile's top/left edge
MATCH_TOLERANCE = 3

YES = "yes"

PROMPT_NAME = "Enter a name for the new tile type: "
PROMPT_TRANSITION = "Is this a transition tile? (yes/no): "
PROMPT_WALL = "Is this a wall tile? (yes/no): "


class TileExtractionError(Exception):
    """A grid cell could not be cropped or encoded."""


# ─── Tile Dictionary ────────────────────────────────────────────────────────

def probe_offsets(tolerance: int = MATCH_TOLERANCE) -> Iterator[int]:
    """Yield 0, +1, -1, +2, -2, ... up to +/-tolerance."""
    yield 0
    for i in range(1, tolerance + 1):
        yield i
        yield -i


class TileDictionary:
    """Known tile types keyed by integer color signature, persisted as JSON."""

    def __init__(self, path: Path, tolerance: int = MATCH_TOLERANCE):
        self.path = path
        self.tolerance = tolerance
        self.types: dict[int, dict] = {}
        self.load()

    def load(self):
        if not self.path.exists():
            print(f"{self.path.name} not found. Starting from scratch.")
            self.types = {}
            return
        print(f"Loading known tile types from {self.path.name}.")
        data = json.loads(self.path.read_text(encoding="utf-8"))
        self.types = {int(key): entry for key, entry in data.items()}

    def save(self) -> bool:
        """Rewrite the whole dictionary file. Write errors are reported, not raised."""
        data = {str(key): entry for key, entry in self.types.items()}
        try:
            with open(self.path, "w", encoding="utf-8", newline="\n") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            print(f"ERROR: Could not write {self.path}: {e}", file=sys.stderr)
            return False
        return True

    def match(self, signature: int) -> int | None:
        """Return the first known key within tolerance, in probe order."""
        for offset in probe_offsets(self.tolerance):
            if signature + offset in self.types:
                return signature + offset
        return None

    def lookup(self, signature: int) -> dict | None:
        key = self.match(signature)
        if key is None:
            return None
        return self.types[key]

    def add(self, signature: int, name: str, is_transition: bool, is_wall: bool) -> dict:
        entry = {"name": name, "is_transition": is_transition, "is_wall": is_wall}
        self.types[signature] = entry
        return entry

    def __len__(self) -> int:
        return len(self.types)

    def __contains__(self, signature: int) -> bool:
        return signature in self.types


# ─── Grid ───────────────────────────────────────────────────────────────────

def grid_size(width: int, height: int, tile_size: int = TILE_SIZE) -> tuple[int, int]:
    """Number of whole tiles across and down; leftover edge pixels are ignored."""
    return width // tile_size, height // tile_size


def iter_grid(cols: int, rows: int) -> Iterator[tuple[int, int]]:
    """Yield (index_x, index_y) with x as the outer loop, so y varies first."""
    for index_x in range(cols):
        for index_y in range(rows):
            yield index_x, index_y


# ─── Extraction & Classification ────────────────────────────────────────────

def extract_tile(img: Image.Image, tile_x: int, tile_y: int,
                 tile_size: int = TILE_SIZE) -> tuple[Image.Image, bytes]:
    """Crop one tile (inset by TILE_INSET) and encode it as PNG.

    Raises TileExtractionError if the inset region runs past the image edge
    or Pillow fails to crop/encode it.
    """
    left = tile_x + TILE_INSET
    top = tile_y + TILE_INSET
    box = (left, top, left + tile_size, top + tile_size)
    if left < 0 or top < 0 or box[2] > img.width or box[3] > img.height:
        raise TileExtractionError(
            f"extract area {box} outside {img.width}x{img.height} image")

    try:
        tile = img.crop(box)
        buf = io.BytesIO()
        tile.save(buf, format="PNG")
    except (OSError, ValueError) as e:
        raise TileExtractionError(str(e)) from e
    return tile, buf.getvalue()


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def color_signature(tile: Image.Image) -> int:
    """Sum of the mean red, green and blue intensities, rounded to an int."""
    if tile.mode not in ("RGB", "RGBA"):
        tile = tile.convert("RGBA")
    r_avg, g_avg, b_avg = ImageStat.Stat(tile).mean[:3]
    return round_half_up(r_avg + g_avg + b_avg)


def new_tile_record(pixel_data: bytes, tile_x: int, tile_y: int) -> dict:
    return {
        "name": None,
        "pixel_data": pixel_data,
        "coordinates": {"x": tile_x, "y": tile_y},
        "is_wall": False,
        "is_transition": False,
    }


# ─── Interactive Resolver ───────────────────────────────────────────────────

def resolve_new_type(record: dict, signature: int, index_x: int, index_y: int,
                     dictionary: TileDictionary, reference_dir: Path,
                     ask: Callable[[str], str] = input) -> dict:
    """Ask the operator about an unknown tile and register it under `signature`."""
    coords = record["coordinates"]
    print(f"Processing tile at coordinates: ({index_x},{index_y}). "
          f"Pixel Position: {coords['x']}, {coords['y']}.")
    print(f"Creating new tile type with average color {signature}.")

    ref_path = reference_dir / f"{index_x}_{index_y}_tile.png"
    ref_path.write_bytes(record["pixel_data"])
    print(f"Creating file for reference: {ref_path.name}")

    name = ask(PROMPT_NAME)
    is_transition = ask(PROMPT_TRANSITION) == YES
    is_wall = ask(PROMPT_WALL) == YES

    entry = dictionary.add(signature, name, is_transition, is_wall)
    record["name"] = entry["name"]
    record["is_transition"] = entry["is_transition"]
    record["is_wall"] = entry["is_wall"]
    return record


def classify_tile(record: dict, signature: int, index_x: int, index_y: int,
                  dictionary: TileDictionary, reference_dir: Path,
                  ask: Callable[[str], str] = input) -> dict:
    known = dictionary.lookup(signature)
    if known is None:
        return resolve_new_type(record, signature, index_x, index_y,
                                dictionary, reference_dir, ask=ask)

    record["name"] = known["name"]
    record["is_transition"] = known["is_transition"]
    record["is_wall"] = known["is_wall"]
    return record


# ─── Slicing Loop ───────────────────────────────────────────────────────────

@dataclass
class SliceResult:
    tiles: list[dict] = field(default_factory=list)
    total: int = 0
    processed: int = 0
    skipped: list[tuple[int, int]] = field(default_factory=list)


def slice_tileset(img: Image.Image, dictionary: TileDictionary,
                  tile_size: int = TILE_SIZE, reference_dir: Path = Path("."),
                  ask: Callable[[str], str] = input,
                  extract: Callable[..., tuple[Image.Image, bytes]] = extract_tile) -> SliceResult:
    """Classify every grid cell of `img`, saving the dictionary after each one.

    Cells that fail to extract are reported and left out of the result's
    tiles; they still count toward progress and are listed in `skipped`.
    """
    cols, rows = grid_size(img.width, img.height, tile_size)
    result = SliceResult(total=cols * rows)
    print(f"Creating tileset with {cols} x {rows} tiles.")

    for index_x, index_y in iter_grid(cols, rows):
        tile_x = index_x * tile_size
        tile_y = index_y * tile_size

        try:
            tile, pixel_data = extract(img, tile_x, tile_y, tile_size)
        except TileExtractionError as e:
            print(f"ERROR: Error processing tile at coordinates: ({index_x},{index_y}). "
                  f"Pixel Position: {tile_x}, {tile_y}. {e}", file=sys.stderr)
            result.skipped.append((index_x, index_y))
        else:
            record = new_tile_record(pixel_data, tile_x, tile_y)
            signature = color_signature(tile)
            classify_tile(record, signature, index_x, index_y,
                          dictionary, reference_dir, ask=ask)
            result.tiles.append(record)

        result.processed += 1
        dictionary.save()
        print(f"Total Progress: {result.processed / result.total * 100}")

    return result


# ─── Manifest ───────────────────────────────────────────────────────────────

def encode_pixel_data(data: bytes) -> dict:
    # Same shape Node's Buffer serializes to, which older manifests use
    return {"type": "Buffer", "data": list(data)}


def decode_pixel_data(value: dict) -> bytes:
    return bytes(value["data"])


def write_manifest(tiles: list[dict], path: Path) -> bool:
    out = [{**tile, "pixel_data": encode_pixel_data(tile["pixel_data"])} for tile in tiles]
    try:
        with open(path, "w", encoding="utf-8", newline="\n") as f:
            json.dump(out, f)
    except OSError as e:
        print(f"ERROR: Could not write {path}: {e}", file=sys.stderr)
        return False
    return True


def load_manifest(path: Path) -> list[dict]:
    with open(path, "r", encoding="utf-8") as f:
        tiles = json.load(f)
    for tile in tiles:
        tile["pixel_data"] = decode_pixel_data(tile["pixel_data"])
    return tiles


# ─── Entry Point ────────────────────────────────────────────────────────────

def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(
        description="Slice a tilemap into tiles and classify them by average color",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  %(prog)s
  %(prog)s dungeon.png --tile-size 32
  %(prog)s dungeon.png --dictionary dungeon_types.json -o dungeon_tiles.json

Known tile types are cached in the dictionary file; re-running against a
similar tileset only asks about colors it has not seen before.
""",
    )
    parser.add_argument("tileset", nargs="?", default=DEFAULT_INPUT,
                        help=f"Tilemap image to slice (default: {DEFAULT_INPUT})")
    parser.add_argument("--tile-size", type=int, default=TILE_SIZE,
                        help=f"Tile size in pixels (default: {TILE_SIZE})")
    parser.add_argument("--dictionary", default=DEFAULT_DICTIONARY,
                        help=f"Tile type dictionary (default: {DEFAULT_DICTIONARY})")
    parser.add_argument("--output", "-o", default=DEFAULT_OUTPUT,
                        help=f"Manifest output path (default: {DEFAULT_OUTPUT})")
    parser.add_argument("--reference-dir", default=".",
                        help="Where reference PNGs of new tile types go (default: .)")
    args = parser.parse_args(argv)

    tileset_path = Path(args.tileset)
    if not tileset_path.exists():
        print(f"Error: File not found: {args.tileset}", file=sys.stderr)
        sys.exit(1)
    if args.tile_size <= 0:
        print(f"Error: --tile-size must be > 0, got {args.tile_size}", file=sys.stderr)
        sys.exit(1)

    reference_dir = Path(args.reference_dir)
    reference_dir.mkdir(parents=True, exist_ok=True)

    dictionary = TileDictionary(Path(args.dictionary))
    with Image.open(tileset_path) as src:
        img = src.convert("RGBA")

    result = slice_tileset(img, dictionary, tile_size=args.tile_size,
                           reference_dir=reference_dir, ask=input)

    print("Tileset creation complete.")
    dictionary.save()
    output_path = Path(args.output)
    if write_manifest(result.tiles, output_path):
        print(f"Saved {len(result.tiles)} tiles to {output_path}")
    print(f"Known tile types: {len(dictionary)}")
    if result.skipped:
        print(f"WARNING: {len(result.skipped)} tile(s) skipped: "
              + ", ".join(f"({x},{y})" for x, y in result.skipped))


if __name__ == "__main__":
    main()
