"""Command-line entry point of the EXR viewer."""

from __future__ import annotations

import argparse

from PIL import Image

from .controller import Viewer
from .file_operations import open_file_dialog
from .layer_tree import LAYER_MARK, channel_selection_label, normalize_channel_display_to_short
from .utils import human_size

_RGBA_SHORTS = ("R", "G", "B", "A")


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="exrview", description="Preview OpenEXR images.")
    parser.add_argument("path", nargs="?", help="EXR file to open")
    parser.add_argument("--exposure", type=float, default=0.0, help="exposure in EV")
    parser.add_argument("--gamma", type=float, default=2.2, help="display gamma")
    parser.add_argument("--layer", help="layer to show, by its displayed name")
    parser.add_argument("--channel", help="single channel of the layer to show")
    parser.add_argument("--output", help="save the preview as an image file")
    parser.add_argument("--meta", action="store_true", help="print the file metadata")
    parser.add_argument("--thumbnails", metavar="DIR", help="render thumbnails of a folder")
    return parser


def _layer_list_item(viewer: Viewer, layer: str | None, channel: str | None) -> str:
    tree = viewer.layer_tree
    display = layer if layer is not None else tree.display_layer(viewer.cache.current_layer_name)
    if channel is None:
        return f"{LAYER_MARK} {display}"
    short = normalize_channel_display_to_short(channel)
    if short in _RGBA_SHORTS:
        return channel_selection_label(tree, short, tree.real_layer(display))
    return f"    • {channel} @{display}"


def main(argv=None) -> int:
    args = _parser().parse_args(argv)
    viewer = Viewer(exposure=args.exposure, gamma=args.gamma)
    status = 0

    if args.thumbnails is not None:
        thumbs = viewer.load_folder_thumbnails(args.thumbnails)
        if thumbs is None:
            status = 1
        else:
            for info in thumbs:
                print(
                    f"{info.file_name}\t{info.width}x{info.height}\t"
                    f"{human_size(info.file_size_bytes)}\t{info.num_layers} layers"
                )

    path = args.path
    if path is None and args.thumbnails is None:
        path = open_file_dialog()
        if path is None:
            print("File selection canceled")
            return 1

    if path is not None:
        viewer.open_path(path)
        if viewer.cache is None:
            status = 1
        else:
            if args.layer is not None or args.channel is not None:
                viewer.click_layer_item(_layer_list_item(viewer, args.layer, args.channel))
                if viewer.status_text.startswith("Error"):
                    status = 1
            if args.meta:
                print(viewer.meta_text)
            if args.output and status == 0 and viewer.image is not None:
                Image.fromarray(viewer.image).save(args.output)

    for line in viewer.console.lines:
        print(line)
    print(viewer.status_text)
    return status


if __name__ == "__main__":
    raise SystemExit(main())