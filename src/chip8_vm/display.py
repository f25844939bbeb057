"""Display: monochrome 64x32 pixel buffer.

Pixels are stored one byte per cell (0 or 1) in row-major order. Sprites
are composed with XOR, and every sprite pixel wraps around the screen edges
independently on each axis.
"""

from typing import Iterable, List


WIDTH = 64
HEIGHT = 32
SPRITE_WIDTH = 8


class Display:
    """Pixel grid used by the CLS and DRW instructions.

    Attributes:
        width: Number of columns (64)
        height: Number of rows (32)
        pixels: Row-major cell values, one byte per pixel
    """

    def __init__(self, width: int = WIDTH, height: int = HEIGHT):
        self.width = width
        self.height = height
        self.pixels = bytearray(width * height)

    def _offset(self, x: int, y: int) -> int:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Pixel out of range: ({x}, {y})")
        return x + y * self.width

    def clear(self) -> None:
        """Turn every pixel off."""
        for offset in range(len(self.pixels)):
            self.pixels[offset] = 0

    def set(self, x: int, y: int, on: bool) -> None:
        """Set a single pixel.

        Raises:
            IndexError: If (x, y) is outside the grid
        """
        self.pixels[self._offset(x, y)] = 1 if on else 0

    def get(self, x: int, y: int) -> bool:
        """Read a single pixel.

        Raises:
            IndexError: If (x, y) is outside the grid
        """
        return self.pixels[self._offset(x, y)] == 1

    def draw(self, x: int, y: int, rows: Iterable[int]) -> bool:
        """XOR an 8-pixel-wide sprite onto the grid.

        Each set bit of each row byte (MSB = leftmost column) toggles the
        cell at ((x + column) mod width, (y + row) mod height).

        Args:
            x: Origin column (any non-negative value, wrapped)
            y: Origin row (any non-negative value, wrapped)
            rows: Sprite bytes, one per row

        Returns:
            True if any lit pixel was turned off by this draw
        """
        collision = False
        for row, bits in enumerate(rows):
            py = (y + row) % self.height
            for column in range(SPRITE_WIDTH):
                if not (bits >> (7 - column)) & 1:
                    continue
                offset = (x + column) % self.width + py * self.width
                if self.pixels[offset]:
                    collision = True
                self.pixels[offset] ^= 1
        return collision

    def to_rows(self) -> List[List[int]]:
        """Copy of the grid as a list of rows."""
        return [
            list(self.pixels[row * self.width:(row + 1) * self.width])
            for row in range(self.height)
        ]

    def lit_pixels(self) -> int:
        """Number of pixels currently on."""
        return sum(self.pixels)

    def render(self, on: str = "#", off: str = ".") -> str:
        """Render the grid as text, one line per row."""
        return "\n".join(
            "".join(on if cell else off for cell in row)
            for row in self.to_rows()
        )
