from __future__ import annotations
from typing import Callable

import glfw
import moderngl
import numpy as np

from . import shaders as S
from .config import AppConfig
from .logging import get_logger
from .selection import BackgroundMode

MODE_KEYS = {
    glfw.KEY_1: BackgroundMode.BLUR,
    glfw.KEY_2: BackgroundMode.BLACK,
    glfw.KEY_3: BackgroundMode.WHITE,
    glfw.KEY_4: BackgroundMode.GRADIENT,
    glfw.KEY_5: BackgroundMode.CUSTOM_IMAGE,
}


def fullscreen_quad(ctx):
    v = np.array([-1, -1, 1, -1, -1, 1, 1, 1], dtype="f4")
    return ctx.buffer(v.tobytes())


class PreviewWindow:
    """
    A glfw window that shows the newest composited image.

    Rendering only ever reads what was last published, so a slow pipeline
    makes the preview stutter but never stalls the window.
    """

    def __init__(
        self,
        cfg: AppConfig,
        on_mode: Callable[[BackgroundMode], None] | None = None,
        on_toggle_debug: Callable[[], None] | None = None,
    ):
        self.cfg = cfg
        self.logger = get_logger(__name__)
        self.on_mode = on_mode
        self.on_toggle_debug = on_toggle_debug

        if not glfw.init():
            raise RuntimeError("GLFW init failed")
        glfw.window_hint(glfw.CONTEXT_VERSION_MAJOR, 3)
        glfw.window_hint(glfw.CONTEXT_VERSION_MINOR, 3)
        glfw.window_hint(glfw.OPENGL_PROFILE, glfw.OPENGL_CORE_PROFILE)
        glfw.window_hint(glfw.OPENGL_FORWARD_COMPAT, True)

        monitor = None
        width, height = cfg.width, cfg.height
        if cfg.fullscreen:
            monitor = glfw.get_primary_monitor()
            mode = glfw.get_video_mode(monitor)
            width, height = mode.size.width, mode.size.height

        self.win = glfw.create_window(width, height, cfg.window_title, monitor, None)
        if not self.win:
            glfw.terminate()
            raise RuntimeError("Could not create the preview window")
        glfw.make_context_current(self.win)
        glfw.swap_interval(1)
        glfw.set_key_callback(self.win, self._on_key)

        self.ctx = moderngl.create_context()
        self.prog = self.ctx.program(vertex_shader=S.VS_QUAD, fragment_shader=S.FS_FRAME)
        self.vbo = fullscreen_quad(self.ctx)
        self.vao = self.ctx.simple_vertex_array(self.prog, self.vbo, "in_vert")
        self.tex = None
        self._tex_size = None
        self._shown_seq = 0

    def _on_key(self, win, key, scancode, action, mods):
        if action != glfw.PRESS:
            return
        if key in (glfw.KEY_ESCAPE, glfw.KEY_Q):
            glfw.set_window_should_close(win, True)
        elif key in MODE_KEYS:
            if self.on_mode is not None:
                self.on_mode(MODE_KEYS[key])
        elif key == glfw.KEY_M:
            if self.on_toggle_debug is not None:
                self.on_toggle_debug()

    def should_close(self) -> bool:
        return bool(glfw.window_should_close(self.win))

    def poll(self):
        glfw.poll_events()

    def upload(self, seq: int, image: np.ndarray | None) -> bool:
        """Uploads `image` if `seq` is newer than what is on screen."""
        if image is None or seq == self._shown_seq:
            return False
        h, w = image.shape[:2]
        if self._tex_size != (w, h):
            if self.tex is not None:
                self.tex.release()
            self.tex = self.ctx.texture((w, h), 3, dtype="f1")
            self.tex.filter = (moderngl.LINEAR, moderngl.LINEAR)
            self.tex.repeat_x = False
            self.tex.repeat_y = False
            self._tex_size = (w, h)
            self.logger.info(f"Preview texture resized to {w}x{h}")
        self.tex.write(np.ascontiguousarray(image).tobytes(), alignment=1)
        self._shown_seq = seq
        return True

    def render(self):
        fb_w, fb_h = glfw.get_framebuffer_size(self.win)
        self.ctx.screen.use()
        self.ctx.viewport = (0, 0, fb_w, fb_h)
        self.ctx.clear(0.0, 0.0, 0.0, 1.0)
        if self.tex is not None:
            self.tex.use(location=0)
            self.prog["frame"].value = 0
            self.vao.render(moderngl.TRIANGLE_STRIP)
        glfw.swap_buffers(self.win)

    def set_title(self, text: str):
        glfw.set_window_title(self.win, f"{self.cfg.window_title} - {text}")

    def close(self):
        glfw.terminate()
