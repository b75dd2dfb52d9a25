"""Crop geometry and render parameters for vertical clips."""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from clipspark.protocols import TranscodingEngine

logger = logging.getLogger(__name__)

TARGET_ASPECT = 9 / 16
TARGET_WIDTH = 1080
TARGET_HEIGHT = 1920

DEFAULT_STYLE = "kinetic"

# ASS force_style presets for burned-in captions
SUBTITLE_STYLES: Dict[str, str] = {
    "kinetic": (
        "FontName=Arial,FontSize=58,PrimaryColour=&H00FFFFFF&,BackColour=&H90000000&,"
        "BorderStyle=3,Outline=2,Shadow=1,Alignment=2"
    ),
    "minimal": (
        "FontName=Arial,FontSize=46,PrimaryColour=&H00FFFFFF&,OutlineColour=&H000000&,"
        "BorderStyle=1,Outline=1,Shadow=0,Alignment=2"
    ),
    "karaoke": (
        "FontName=Arial,FontSize=52,PrimaryColour=&H00000000&,OutlineColour=&H000000&,"
        "BorderStyle=1,Outline=2,Shadow=1,Alignment=2"
    ),
    "bold": (
        "FontName=Arial Black,FontSize=60,PrimaryColour=&H00FFFFFF&,OutlineColour=&H000000&,"
        "BorderStyle=3,Outline=3,Shadow=1,Alignment=2"
    ),
}


@dataclass(frozen=True)
class CropGeometry:
    """A crop rectangle in source pixels."""
    width: int
    height: int
    x: int
    y: int

    def to_filter(self) -> str:
        return f"crop={self.width}:{self.height}:{self.x}:{self.y}"


def compute_crop_geometry(width: int, height: int) -> CropGeometry:
    """
    Largest centered 9:16 rectangle inside a width x height frame.

    Wider sources lose columns on both sides, taller sources lose rows
    top and bottom.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid video dimensions: {width}x{height}")

    if width / height > TARGET_ASPECT:
        new_width = int(height * TARGET_ASPECT)
        return CropGeometry(width=new_width, height=height, x=(width - new_width) // 2, y=0)

    new_height = int(width / TARGET_ASPECT)
    return CropGeometry(width=width, height=new_height, x=0, y=(height - new_height) // 2)


def build_crop_filters(
    width: int,
    height: int,
    target_width: int = TARGET_WIDTH,
    target_height: int = TARGET_HEIGHT,
) -> List[str]:
    """Crop, scale to the delivery resolution and reset the sample aspect ratio."""
    crop = compute_crop_geometry(width, height)
    return [crop.to_filter(), f"scale={target_width}:{target_height}", "setsar=1"]


def escape_filter_path(path) -> str:
    """Escape a file path for use inside an ffmpeg filter argument."""
    return str(path).replace("\\", "/").replace(":", "\\:").replace("'", "\\'")


def subtitle_style(name: Optional[str]) -> str:
    return SUBTITLE_STYLES.get(name or DEFAULT_STYLE, SUBTITLE_STYLES[DEFAULT_STYLE])


def build_subtitle_filter(subtitle_path: Path, style_name: Optional[str]) -> str:
    return f"subtitles='{escape_filter_path(subtitle_path)}':force_style='{subtitle_style(style_name)}'"


@dataclass
class RenderPlan:
    """Everything the transcoding engine needs for one clip."""
    start: float
    duration: float
    filters: List[str] = field(default_factory=list)


def build_render_plan(
    start: float,
    duration: float,
    crop_filters: List[str],
    subtitle_path: Optional[Path] = None,
    style_name: Optional[str] = None,
    burn_in: bool = False,
) -> RenderPlan:
    """
    Assemble trim range and filter chain for one clip.

    The subtitle overlay is appended only when burn-in is requested and a
    caption file is given.
    """
    filters = list(crop_filters)
    if burn_in and subtitle_path:
        filters.append(build_subtitle_filter(subtitle_path, style_name))
    return RenderPlan(start=start, duration=duration, filters=filters)


async def render_clip(
    engine: TranscodingEngine,
    input_path: Path,
    output_path: Path,
    plan: RenderPlan,
) -> Path:
    """Hand a render plan to the transcoding engine."""
    logger.info(
        f"Rendering {Path(output_path).name}: {plan.start:.2f}s +{plan.duration:.2f}s, "
        f"{len(plan.filters)} filters"
    )
    return await engine.render(input_path, output_path, plan.start, plan.duration, plan.filters)
