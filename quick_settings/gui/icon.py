"""
Generate the quick settings icon programmatically
"""

import math
import os
from typing import Optional

from PIL import Image, ImageDraw

ACCENT = (74, 144, 226, 255)
HIGHLIGHT = (255, 200, 60, 255)
BACKGROUND = (40, 40, 40, 255)


def create_icon(size: int = 256) -> Image.Image:
    """Create a sun above two toggle switches."""
    img = Image.new('RGBA', (size, size), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)

    pad = size // 16
    draw.rounded_rectangle(
        [pad, pad, size - pad, size - pad],
        radius=size // 6,
        fill=BACKGROUND,
    )

    # Sun (brightness)
    cx = size // 2
    cy = int(size * 0.36)
    core = size // 9
    ray_inner = int(core * 1.5)
    ray_outer = int(core * 2.2)
    ray_width = max(1, size // 40)
    for i in range(8):
        angle = i * math.pi / 4
        x1 = cx + int(ray_inner * math.cos(angle))
        y1 = cy + int(ray_inner * math.sin(angle))
        x2 = cx + int(ray_outer * math.cos(angle))
        y2 = cy + int(ray_outer * math.sin(angle))
        draw.line([(x1, y1), (x2, y2)], fill=HIGHLIGHT, width=ray_width)
    draw.ellipse([cx - core, cy - core, cx + core, cy + core], fill=HIGHLIGHT)

    # Toggle switches (Wi-Fi / Bluetooth), first on, second off
    track_left = int(size * 0.25)
    track_right = int(size * 0.75)
    track_height = max(2, size // 10)
    knob_pad = max(1, size // 64)
    for i, on in enumerate([True, False]):
        top = int(size * (0.62 + i * 0.15))
        bottom = top + track_height
        draw.rounded_rectangle(
            [track_left, top, track_right, bottom],
            radius=track_height // 2,
            fill=ACCENT if on else (90, 90, 90, 255),
        )
        knob = track_height - 2 * knob_pad
        knob_left = track_right - knob_pad - knob if on else track_left + knob_pad
        draw.ellipse(
            [knob_left, top + knob_pad, knob_left + knob, top + knob_pad + knob],
            fill=(255, 255, 255, 255),
        )

    return img


def save_icons(directory: Optional[str] = None) -> str:
    """Save the icon in multiple sizes. Returns the path of the main icon."""
    directory = directory or os.path.dirname(os.path.abspath(__file__))
    os.makedirs(directory, exist_ok=True)

    for size in [16, 32, 48, 64, 128, 256]:
        create_icon(size).save(os.path.join(directory, f'icon_{size}.png'))

    path = os.path.join(directory, 'icon.png')
    create_icon(256).save(path)
    return path


if __name__ == '__main__':
    print(f"Icon saved to {save_icons()}")
