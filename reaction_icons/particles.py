"""
Deterministic particle overlays: confetti, confetti-cannon, stars and snow.

Each particle is a pure function of (particle index, progress, amplitude,
canvas size). Seeds come from the index multiplied by a fixed irrational
constant, never from a random number generator, so any thread rendering a
frame produces the same positions.
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

from PIL import Image, ImageColor, ImageDraw

from .animation import FULL_ROTATION, amplitude_factor
from .constants import DEFAULT_SECONDARY_COLOR, REFERENCE_CANVAS_SIZE

PARTICLE_KINDS = ("confetti", "confetti-cannon", "stars", "snow")

CONFETTI_COLORS = (
    "#FF6B6B", "#4ECDC4", "#45B7D1", "#FD79A8", "#A29BFE", "#6C5CE7",
    "#00B894", "#FDCB6E", "#E17055", "#74B9FF",
)
SNOW_COLOR = "#EAF4FF"
SNOW_OUTLINE = "#9FC5E8"

CANNON_BURSTS = 4
CANNON_ARC_DEGREES = 60
CANNON_ELEVATION_DEGREES = 60
CANNON_OVERLAP = 0.3


@dataclass(frozen=True)
class DriftSpec:
    count: int
    seed: float
    spread: float
    direction: int  # +1 falls, -1 rises
    sway: float
    size: float
    shape: str


DRIFT_SPECS = {
    "confetti": DriftSpec(count=16, seed=1.6180339887, spread=97.31, direction=1, sway=8.0, size=7.0, shape="rect"),
    "stars": DriftSpec(count=12, seed=2.4142135624, spread=61.73, direction=-1, sway=3.0, size=6.0, shape="star"),
    "snow": DriftSpec(count=20, seed=2.2360679775, spread=83.17, direction=1, sway=10.0, size=3.5, shape="circle"),
}
CANNON_COUNT = 12
CANNON_SEED = 2.7182818285


@dataclass(frozen=True)
class Particle:
    x: float
    y: float
    size: float
    rotation: float
    alpha: float
    color: str
    shape: str


@dataclass(frozen=True)
class ParticleField:
    kind: str
    particles: Tuple[Particle, ...]

    def __len__(self) -> int:
        return len(self.particles)


def _fraction(value: float) -> float:
    return value - math.floor(value)


def _drift_particles(kind: str, progress: float, factor: float, canvas_size: int, secondary_color: str) -> List[Particle]:
    spec = DRIFT_SPECS[kind]
    scale = canvas_size / REFERENCE_CANVAS_SIZE
    phase = progress * FULL_ROTATION
    particles = []

    for index in range(spec.count):
        seed = index * spec.seed
        base_x = (seed * spec.spread) % canvas_size
        base_y = (seed * spec.spread * 1.37) % canvas_size
        # Whole cycles per loop keep the last frame continuous with the first
        cycles = 1 + index % 2
        y = (base_y + spec.direction * progress * canvas_size * cycles) % canvas_size
        x = (base_x + math.sin(phase + seed) * spec.sway * factor * scale) % canvas_size
        rotation = seed + phase * (1 + index % 3)
        modulation = (math.sin(seed * 3.1) + 1) / 2

        if kind == "stars":
            alpha = 0.35 + 0.65 * (math.sin(phase * 2 + seed) + 1) / 2
            color = secondary_color
        elif kind == "snow":
            alpha = 0.6 + 0.4 * modulation
            color = SNOW_COLOR
        else:
            alpha = 0.75 + 0.25 * math.sin(seed * 2.3 + phase)
            color = CONFETTI_COLORS[index % len(CONFETTI_COLORS)]

        particles.append(Particle(
            x=x,
            y=y,
            size=spec.size * (0.6 + 0.4 * modulation) * scale,
            rotation=rotation,
            alpha=max(0.0, min(1.0, alpha)),
            color=color,
            shape=spec.shape,
        ))
    return particles


def _cannon_burst(burst: int, burst_progress: float, progress: float, factor: float, canvas_size: int, alpha_scale: float) -> List[Particle]:
    scale = canvas_size / REFERENCE_CANVAS_SIZE
    from_left = burst % 2 == 0
    origin_x = 0.0 if from_left else float(canvas_size)
    origin_y = float(canvas_size)
    direction = 1 if from_left else -1
    gravity = canvas_size * 1.2
    t = burst_progress
    particles = []

    for index in range(CANNON_COUNT):
        seed = (index + burst * CANNON_COUNT) * CANNON_SEED
        fan = index / (CANNON_COUNT - 1) - 0.5
        angle = math.radians(CANNON_ELEVATION_DEGREES + fan * CANNON_ARC_DEGREES + (_fraction(seed) - 0.5) * 6)
        speed = canvas_size * (1.8 + 0.4 * _fraction(seed * 1.7)) * (0.6 + 0.4 * factor)
        sway = math.sin(progress * FULL_ROTATION + seed) * 2 * factor * scale

        x = origin_x + direction * math.cos(angle) * speed * t + sway
        y = origin_y - math.sin(angle) * speed * t + gravity * t * t
        alpha = (1 - 0.7 * min(1.0, t)) * alpha_scale

        particles.append(Particle(
            x=x,
            y=y,
            size=6.0 * (0.7 + 0.3 * (math.sin(seed * 3.1) + 1) / 2) * scale,
            rotation=seed + t * FULL_ROTATION * 2,
            alpha=max(0.0, min(1.0, alpha)),
            color=CONFETTI_COLORS[(index + burst) % len(CONFETTI_COLORS)],
            shape="rect",
        ))
    return particles


def _cannon_particles(progress: float, factor: float, canvas_size: int) -> List[Particle]:
    burst = int(math.floor(progress * CANNON_BURSTS)) % CANNON_BURSTS
    burst_progress = progress * CANNON_BURSTS - math.floor(progress * CANNON_BURSTS)
    particles: List[Particle] = []

    if burst_progress < CANNON_OVERLAP:
        # Carry the previous burst out while the next one launches
        previous = (burst - 1) % CANNON_BURSTS
        fade = 1 - burst_progress / CANNON_OVERLAP
        particles.extend(_cannon_burst(previous, 1 + burst_progress, progress, factor, canvas_size, fade))

    particles.extend(_cannon_burst(burst, burst_progress, progress, factor, canvas_size, 1.0))
    return particles


def generate_particles(
    kind: str,
    progress: float,
    amplitude: Optional[float],
    canvas_size: int,
    secondary_color: Optional[str] = None,
) -> ParticleField:
    """Compute the particle field for one frame."""
    factor = amplitude_factor(amplitude)
    if kind == "confetti-cannon":
        particles = _cannon_particles(progress, factor, canvas_size)
    elif kind in DRIFT_SPECS:
        particles = _drift_particles(kind, progress, factor, canvas_size, secondary_color or DEFAULT_SECONDARY_COLOR)
    else:
        raise ValueError(f"Unknown particle kind: {kind}")
    return ParticleField(kind=kind, particles=tuple(particles))


def _rotated_rect(x: float, y: float, width: float, height: float, angle: float) -> List[Tuple[float, float]]:
    cos_a, sin_a = math.cos(angle), math.sin(angle)
    corners = ((-width / 2, -height / 2), (width / 2, -height / 2), (width / 2, height / 2), (-width / 2, height / 2))
    return [(x + cx * cos_a - cy * sin_a, y + cx * sin_a + cy * cos_a) for cx, cy in corners]


def _star(x: float, y: float, radius: float, angle: float) -> List[Tuple[float, float]]:
    points = []
    for point in range(10):
        r = radius if point % 2 == 0 else radius * 0.45
        theta = angle + point * math.pi / 5 - math.pi / 2
        points.append((x + r * math.cos(theta), y + r * math.sin(theta)))
    return points


def draw_particles(image: Image.Image, field: ParticleField) -> None:
    """Alpha-composite a particle field onto an RGBA image in place."""
    layer = Image.new("RGBA", image.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer, "RGBA")

    for particle in field.particles:
        red, green, blue = ImageColor.getrgb(particle.color)[:3]
        fill = (red, green, blue, int(round(particle.alpha * 255)))
        if particle.shape == "rect":
            draw.polygon(_rotated_rect(particle.x, particle.y, particle.size, particle.size * 0.5, particle.rotation), fill=fill)
        elif particle.shape == "star":
            draw.polygon(_star(particle.x, particle.y, particle.size, particle.rotation), fill=fill)
        else:
            r = particle.size
            outline_rgb = ImageColor.getrgb(SNOW_OUTLINE)[:3]
            draw.ellipse(
                (particle.x - r, particle.y - r, particle.x + r, particle.y + r),
                fill=fill,
                outline=(*outline_rgb, fill[3]),
            )

    image.alpha_composite(layer)
