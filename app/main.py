#!/usr/bin/env python3
import argparse
import sys
from os import environ
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Type, TypeVar

environ["PYGAME_HIDE_SUPPORT_PROMPT"] = "1"

import pygame
from returns.result import Failure
from rich import box
from rich.panel import Panel
from rich.table import Table
from rich.traceback import install

from __version__ import __version_string__ as __version__
from chip8vm import Disassembler, Emulator, EmulatorError, FatalError, Program
from chip8vm.display import HEIGHT, WIDTH, parse_color, to_rgb
from chip8vm.exception import ExitException
from chip8vm.logger import console, setup_logging
from chip8vm.util.config import Config, debug_from_config, keymap_from_config, load_config, quirks_from_config

E = TypeVar("E", bound=BaseException)


def _extract_exc_info(e: E) -> Tuple[Type[E], E, Optional[object]]:
    return (type(e), e, e.__traceback__)


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="CHIP-8 virtual machine")
    parser.add_argument("rom", type=Path, help="program image, loaded at $200")
    parser.add_argument("--config", type=Path, default=None, help="TOML config file (default: ./config.toml)")
    parser.add_argument("--debug", action="store_true", help="debug logging")
    parser.add_argument("--disassemble", action="store_true", help="print a listing and exit")
    return parser.parse_args(argv)


def _print_controls(keymap: Dict[str, int]) -> None:
    table = Table(title="Controls", box=box.ROUNDED, border_style="cyan")
    table.add_column("Key", justify="center")
    table.add_column("Action", justify="left")
    for name, key in sorted(keymap.items(), key=lambda item: item[1]):
        table.add_row(name.upper(), f"Key {key:X}")
    table.add_row("Space", "Pause/Resume")
    table.add_row("N", "Single step (paused)")
    table.add_row("R", "Reset")
    table.add_row("ESC", "Quit")
    console.print(table)


def _resolve_keys(keymap: Dict[str, int]) -> List[Tuple[int, int]]:
    """(pygame key code, virtual key) pairs."""
    resolved = []
    for name, key in keymap.items():
        try:
            resolved.append((pygame.key.key_code(name), key))
        except ValueError as e:
            raise ExitException(f"Unknown key name {name!r} for key {key:X}") from e
    return resolved


def run(emulator: Emulator, cfg: Config, title: str) -> None:
    general = cfg["general"]
    scale = general["scale"]
    on, off = parse_color(general["pixel_on"]), parse_color(general["pixel_off"])

    pygame.init()
    screen = pygame.display.set_mode((WIDTH * scale, HEIGHT * scale), pygame.RESIZABLE)
    pygame.display.set_caption(f"CHIP-8 - {title}")
    clock = pygame.time.Clock()
    keys = _resolve_keys(keymap_from_config(cfg))

    dirty = True
    paused = False

    @emulator.on("draw")
    @emulator.on("clear_screen")
    def _mark_dirty(*_: object) -> None:
        nonlocal dirty
        dirty = True

    try:
        while True:
            single_step = False
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    return
                if event.type == pygame.KEYDOWN:
                    match event.key:
                        case pygame.K_ESCAPE:
                            return
                        case pygame.K_SPACE:
                            paused = not paused
                            pygame.display.set_caption(f"CHIP-8 - {title}" + (" (paused)" if paused else ""))
                        case pygame.K_n:
                            single_step = paused
                        case pygame.K_r:
                            emulator.Reset()
                            paused = False

            pressed = pygame.key.get_pressed()
            emulator.Input({key: bool(pressed[code]) for code, key in keys})

            if not paused or single_step:
                try:
                    emulator.Step()
                except FatalError as e:
                    console.print(Panel.fit(f"[bold red]{e.exception.__name__}[/]: {e.message}", border_style="red"))
                    console.print(f"PC=${emulator.Architecture.ProgramCounter:03X} after {emulator.StepCount} steps")
                    paused = True
                if emulator.debug.Logging and emulator.tracelog:
                    console.print(emulator.tracelog[-1], markup=False, highlight=False)

            if dirty:
                frame = pygame.surfarray.make_surface(to_rgb(emulator.display, on, off))
                screen.blit(pygame.transform.scale(frame, screen.get_size()), (0, 0))
                pygame.display.flip()
                dirty = False

            clock.tick(general["steps_per_second"])
    finally:
        pygame.quit()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    log = setup_logging(args.debug)
    install(console=console)

    result = Program.from_file(args.rom)
    if isinstance(result, Failure):
        log.error(result.failure())
        return 1
    program = result.unwrap()

    if args.disassemble:
        for line in Disassembler.DisassembleProgram(program.to_bytes()):
            console.print(line, markup=False, highlight=False)
        return 0

    cfg = load_config(args.config)
    emulator = Emulator(quirks=quirks_from_config(cfg), debug=debug_from_config(cfg))
    emulator.Load(program)

    console.print(Panel.fit(f"[bold cyan]CHIP-8 VM [red]{__version__}[/red][/]", border_style="bright_blue"))
    console.print(f"[green]Loaded:[/green] {args.rom}\n")
    _print_controls(keymap_from_config(cfg))

    try:
        run(emulator, cfg, args.rom.name)
    except ExitException as e:
        log.error(str(e))
        return 2
    except EmulatorError as e:
        log.error(f"Emulator stopped: {e.message}", exc_info=_extract_exc_info(e.original))
        return 3
    return 0


if __name__ == "__main__":
    sys.exit(main())
