# exrview

Inspect OpenEXR images: list their layers and channels, read header and layer
metadata, render tone-mapped previews (exposure in EV stops, ACES curve,
gamma), show single channels in grey or as normalised depth, and build
thumbnails for every EXR file in a folder.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## The `exrview` command

```
exrview [PATH] [--exposure EV] [--gamma G] [--layer NAME] [--channel NAME]
        [--output FILE] [--meta] [--thumbnails DIR]
```

- `PATH` – the EXR file to open. When neither `PATH` nor `--thumbnails` is
  given, a file-choosing dialog is shown (this needs `tkinter`); cancelling it
  prints `File selection canceled` and exits with status 1.
- `--exposure` (default `0.0`) and `--gamma` (default `2.2`) – preview settings.
- `--layer NAME` – show this layer as an RGB composite instead of the layer
  chosen automatically. Use the displayed name; the unnamed base layer is
  displayed as `Beauty`.
- `--channel NAME` – show a single channel of the layer (`R`, `Red`, `Z`, …) in
  grey. Channels named `Z` or containing `DEPTH` are instead normalised between
  their 1st and 99th percentiles and inverted, so near is bright.
- `--output FILE` – save the preview as an image (any format Pillow can write,
  chosen by the file extension). Nothing is saved if loading failed.
- `--meta` – print the metadata as text.
- `--thumbnails DIR` – render 150 px high thumbnails of every `.exr` file
  directly inside `DIR` and print one line per file: name, thumbnail size, file
  size and number of layers. Unreadable files are skipped.

After that the command prints its log (with timings) and a final status line.
It exits with status 0 on success and 1 when something could not be loaded.

When a file is opened, the layer shown first is, in this order of preference:

1. the unnamed layer, if it has R, G and B channels;
2. a layer whose name contains `beauty`, `rgba`, `default` or `combined`;
3. the first layer with R, G and B channels;
4. the first layer.

## Using it as a library

```python
import numpy as np

from exrview.exrfile import ExrChannel, ExrLayer, read_exr, write_exr
from exrview.image_cache import ImageCache, extract_layers_info, find_best_layer
from exrview.metadata import build_ui_rows, read_and_group_metadata
from exrview.processing import process_pixel
from exrview.thumbnails import generate_exr_thumbnails_in_dir
from exrview.utils import human_size

# Write a small two-layer file
ones = np.ones((4, 8), dtype=np.float32)
write_exr("shot.exr", [
    ExrLayer([ExrChannel("R", ones), ExrChannel("G", ones * 0.5), ExrChannel("B", ones * 0.2)],
             layer_name="beauty"),
    ExrLayer([ExrChannel("Z", ones * 3.0)], layer_name="depth"),
])

# Layers and the one picked for the first preview
layers = extract_layers_info("shot.exr")
print([layer.name for layer in layers], find_best_layer(layers))

# Previews are (height, width, 4) uint8 arrays
cache = ImageCache.from_file("shot.exr")
preview = cache.process_to_image(exposure=0.0, gamma=2.2)
cache.load_channel("shot.exr", "depth", "Z")
depth = cache.process_depth_image(invert=True)

# Metadata as two-column rows
meta = read_and_group_metadata("shot.exr")
for key, value in build_ui_rows(meta):
    print(f"{key:30} {value}")

# Thumbnails for a folder
for thumb in generate_exr_thumbnails_in_dir(".", 150, 0.0, 2.2):
    print(thumb.file_name, human_size(thumb.file_size_bytes), thumb.num_layers)

# Tone-map one HDR pixel to 8-bit RGBA
print(process_pixel(1.5, 0.8, 0.2, 1.0, exposure=0.0, gamma=2.2))
```

`exrview.controller.Viewer` holds the state a viewer window would show (image,
status text, metadata, layer list, console log) and has handlers for opening a
file (`open_path`), clicking a row of the layer list (`click_layer_item`),
changing exposure or gamma (`parameters_changed`, or batched through
`Viewer.throttle` and `flush`), loading folder thumbnails
(`load_folder_thumbnails`) and clearing the console (`clear_console`). The
layer list itself is built by `exrview.layer_tree.build_layer_tree`.

Reading functions raise `exrview.exrfile.ExrError` (or `OSError`) when a file
cannot be read, or when a requested channel does not exist.

## Limitations

- There is no interactive window: the command prints its results and can save
  a preview image, but it does not display the image or offer sliders.
- Only scan-line EXR files are read and written, with no compression, RLE, ZIPS
  or ZIP compression. Tiled and deep files, other compressions and subsampled
  channels are rejected with `ExrError`.