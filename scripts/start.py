"""Interactive viewer: drag with the left mouse button to stir the dye.

    python scripts/start.py --config configs/fluid_params.yaml [--image picture.png]

Keys: r = reset, Esc = quit.
"""
import argparse
import logging
from pathlib import Path

import imageio.v2 as imageio
import taichi as ti

from stablefluids import PointerSample, Simulation, SimulationConfig
from stablefluids.logging_config import logging_from_config
from stablefluids.utils.parser import backend
from stablefluids.utils.reader import load_yaml

logger = logging.getLogger("stablefluids.viewer")

DEFAULT_CONFIG = Path(__file__).resolve().parent.parent / "configs" / "fluid_params.yaml"


@ti.kernel
def compose(dye: ti.template(), img: ti.template()):
    for i, j in img:
        value = dye[i, j]
        if ti.static(dye.n == 1):
            img[i, j] = ti.Vector([value[0], value[0], value[0]])
        else:
            img[i, j] = ti.Vector([value[0], value[1], value[2]])


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG)
    parser.add_argument("--image", type=Path, help="image used as the initial dye")
    parser.add_argument("--backend", help="override the configured Taichi backend")
    parser.add_argument("--debug", action="store_true")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    cfg = load_yaml(args.config)
    logging_from_config(cfg, debug=args.debug)

    ti.init(arch=backend(args.backend or cfg.get("backend", "gpu")))
    print("[arch]", ti.lang.impl.current_cfg().arch, "Taichi", ti.__version__)

    config = SimulationConfig.from_dict(cfg.get("simulation", {}))
    image = imageio.imread(args.image) if args.image else None

    window_cfg = cfg.get("window", {})
    window = ti.ui.Window(window_cfg.get("title", "Stable Fluids"),
                          config.resolution,
                          vsync=window_cfg.get("vsync", True))
    canvas = window.get_canvas()
    img = ti.Vector.field(3, ti.f32, shape=config.resolution)

    def present(dye):
        compose(dye.field, img)
        canvas.set_image(img)

    sim = Simulation(config, compositor=present)
    sim.start(image=image)

    was_pressed = False
    while window.running:
        for e in window.get_events(ti.ui.PRESS):
            if e.key == ti.ui.ESCAPE:
                window.running = False
            elif e.key == "r":
                sim.reset()

        pressed = window.is_pressed(ti.ui.LMB)
        if pressed or was_pressed:
            x, y = window.get_cursor_pos()  # 0..1, origin bottom-left
            sim.post_pointer(PointerSample(x, y, active=pressed))
        was_pressed = pressed

        sim.step()
        window.show()

    sim.close()


if __name__ == "__main__":
    main()
