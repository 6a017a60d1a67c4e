"""Menu banner utilities."""

from pathlib import Path

from dnet_tui.constants import MENU_BANNER, VERSION
from .logger import logger


def _find_art_file() -> Path | None:
    """Locate an override ASCII art file at misc/dnet.art in the working directory."""
    candidate = Path.cwd() / "misc" / "dnet.art"
    return candidate if candidate.is_file() else None


def get_banner_text() -> str:
    """Banner for the menu screen, with the version line appended."""
    art = MENU_BANNER
    art_path = _find_art_file()
    if art_path is not None:
        try:
            art = art_path.read_text(encoding="utf-8", errors="ignore").rstrip("\n")
        except OSError as e:
            logger.warning("Could not read banner art %s: %s", art_path, e)
    return f"{art}\n\nv{VERSION}"
