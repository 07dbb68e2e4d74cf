"""Animation pages for generated p5.js code.

``AnimationService`` renders code into a self-contained HTML page with
playback and export controls, writes it to disk and hands back a playable
``file://`` URL.
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Dict, Optional

from .errors import AnimationError
from .models import Animation
from .templates import render_template

logger = logging.getLogger(__name__)

ANIMATION_TEMPLATE = "animation.html.jinja"

EXAMPLES: Dict[str, str] = {
    "basic": """// 基础动画示例
function setup() {
  createCanvas(600, 600);
}

function draw() {
  background(20);

  // 绘制旋转的正方形
  push();
  translate(width/2, height/2);
  rotate(frameCount * 0.02);
  fill(100, 150, 255);
  rectMode(CENTER);
  rect(0, 0, 100, 100);
  pop();

  // 显示帧数
  fill(255);
  text('Frame: ' + frameCount, 10, 20);
}""",
    "sine": """// 正弦波动画
let angle = 0;

function setup() {
  createCanvas(600, 600);
}

function draw() {
  background(20);

  // 绘制正弦波
  stroke(100, 150, 255);
  strokeWeight(2);
  noFill();

  beginShape();
  for (let x = 0; x < width; x += 5) {
    let y = height/2 + sin(angle + x * 0.02) * 100;
    vertex(x, y);
  }
  endShape();

  // 绘制移动的点
  let x = (frameCount * 2) % width;
  let y = height/2 + sin(angle + x * 0.02) * 100;

  fill(255, 100, 100);
  noStroke();
  circle(x, y, 10);

  angle += 0.02;
}""",
    "fractal": """// 简单分形树
function setup() {
  createCanvas(800, 600);
}

function draw() {
  background(20);

  stroke(150, 255, 150);
  strokeWeight(2);

  // 从底部中心开始绘制树
  translate(width/2, height);
  branch(80);
}

function branch(len) {
  line(0, 0, 0, -len);
  translate(0, -len);

  if (len > 4) {
    push();
    rotate(PI/6);
    branch(len * 0.67);
    pop();

    push();
    rotate(-PI/6);
    branch(len * 0.67);
    pop();
  }
}""",
}


def get_example_code(kind: str = "basic") -> str:
    """Return a bundled example; unknown kinds fall back to ``basic``."""
    return EXAMPLES.get(kind, EXAMPLES["basic"])


class AnimationService:
    """Creates and keeps track of rendered animation pages.

    Args:
        output_dir: Directory receiving ``<id>.html`` pages
        gif_seconds: Length of the GIF captured by the page's record button
    """

    def __init__(self, output_dir: Path, gif_seconds: int = 3):
        self.output_dir = Path(output_dir)
        self.gif_seconds = gif_seconds
        self._animations: Dict[str, Animation] = {}
        self.current: Optional[Animation] = None

    def render_html(self, code: str, width: int = 400, height: int = 400, title: Optional[str] = None) -> str:
        return render_template(
            ANIMATION_TEMPLATE,
            {
                "code": code,
                "width": width,
                "height": height,
                "title": title,
                "gif_seconds": self.gif_seconds,
            },
        )

    def create_animation(
        self,
        code: str,
        title: Optional[str] = None,
        width: int = 400,
        height: int = 400,
    ) -> Animation:
        """Render ``code`` into a page and return the playable Animation.

        Raises:
            AnimationError: If the code is empty or the page cannot be written
        """
        if not isinstance(code, str) or not code.strip():
            raise AnimationError("Code is required and must be a string")
        if width <= 0 or height <= 0:
            raise AnimationError(f"Invalid canvas size {width}x{height}")

        animation_id = str(uuid.uuid4())
        html = self.render_html(code, width, height, title)
        path = self.output_dir / f"{animation_id}.html"
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(html, encoding="utf-8")
        except OSError as e:
            raise AnimationError(f"Failed to write animation page: {e}") from e

        animation = Animation(
            id=animation_id,
            url=path.resolve().as_uri(),
            code=code,
            title=title,
            width=width,
            height=height,
        )
        self._animations[animation_id] = animation
        self.current = animation
        logger.info("Created animation %s at %s", animation_id, animation.url)
        return animation

    def get_animation(self, animation_id: str) -> Optional[Animation]:
        return self._animations.get(animation_id)

    def clear(self) -> None:
        """Forget the current animation; pages on disk are kept."""
        self.current = None

    def __len__(self) -> int:
        return len(self._animations)
