"""File and folder choosing dialogs plus path helpers."""

from __future__ import annotations

from pathlib import Path

_IMAGE_PATTERNS = "*.exr *.png *.jpg *.jpeg *.gif"


def _run_dialog(ask, **options):
    import tkinter
    from tkinter import filedialog

    root = tkinter.Tk()
    root.withdraw()
    try:
        chosen = getattr(filedialog, ask)(parent=root, **options)
    finally:
        root.destroy()
    return Path(chosen) if chosen else None


def open_file_dialog() -> Path | None:
    """Ask the user for an image file; ``None`` when cancelled."""
    return _run_dialog(
        "askopenfilename",
        title="Otwórz plik obrazu",
        filetypes=[("Obrazy", _IMAGE_PATTERNS), ("Wszystkie pliki", "*")],
    )


def open_folder_dialog() -> Path | None:
    """Ask the user for a working folder; ``None`` when cancelled."""
    return _run_dialog("askdirectory", title="Wybierz folder roboczy")


def get_file_name(path) -> str:
    """Return the final path component, or a placeholder when there is none."""
    name = Path(path).name
    return name if name else "Nieznany plik"