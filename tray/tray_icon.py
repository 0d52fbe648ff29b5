import logging
import webbrowser

import pystray
from PIL import Image, ImageDraw

logger = logging.getLogger(__name__)

ICON_SIZE = 64
IDLE_COLOR = "#6b7280"
RECORDING_COLOR = "#dc2626"


def create_icon_image(recording: bool) -> Image.Image:
    img = Image.new("RGBA", (ICON_SIZE, ICON_SIZE), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    margin = 8
    bounds = [margin, margin, ICON_SIZE - margin, ICON_SIZE - margin]
    if recording:
        draw.ellipse(bounds, fill=RECORDING_COLOR)
    else:
        # Microphone outline when idle
        draw.ellipse(bounds, outline=IDLE_COLOR, width=6)
        draw.rounded_rectangle([24, 16, 40, 40], radius=8, fill=IDLE_COLOR)
    return img


def format_elapsed(seconds: float) -> str:
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}:{secs:02d}"


class TrayIcon:
    """Start/stop toggle for the single active recording."""

    def __init__(self, on_toggle_recording, on_quit, url: str):
        self._on_toggle_recording = on_toggle_recording
        self._on_quit = on_quit
        self._url = url
        self._is_recording = False
        self._elapsed = 0.0
        self._icon: pystray.Icon | None = None

    @property
    def is_recording(self) -> bool:
        return self._is_recording

    def record_label(self) -> str:
        if self._is_recording:
            return f"Stop recording ({format_elapsed(self._elapsed)})"
        return "Start recording"

    def _build_menu(self):
        return pystray.Menu(
            pystray.MenuItem(lambda item: self.record_label(), self._toggle_recording, default=True),
            pystray.MenuItem("Open dashboard", lambda: webbrowser.open(self._url)),
            pystray.Menu.SEPARATOR,
            pystray.MenuItem("Quit", self._quit),
        )

    def _toggle_recording(self):
        try:
            self._on_toggle_recording()
        except Exception as e:
            logger.error("Error toggling recording: %s", e)

    def _quit(self):
        try:
            self._on_quit()
        except Exception as e:
            logger.error("Error quitting: %s", e)
        if self._icon:
            self._icon.stop()

    def update_state(self, is_recording: bool, elapsed: float = 0.0):
        changed = is_recording != self._is_recording
        self._is_recording = is_recording
        self._elapsed = elapsed
        if self._icon:
            if changed:
                self._icon.icon = create_icon_image(is_recording)
            self._icon.update_menu()

    def run(self):
        self._icon = pystray.Icon(
            "PromptStudio",
            icon=create_icon_image(False),
            title="Prompt Studio",
            menu=self._build_menu(),
        )
        self._icon.run()
