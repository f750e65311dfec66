"""Command-line interface for fakemachine.

Usage:
    fakemachine backends                          # Show which backends this host supports
    fakemachine run --initrd initrd.img           # Boot with the preferred backend
    fakemachine run -b uml --initrd initrd.img --image disk.img:root --mount /srv/data:/data:data
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import NoReturn

import click
from pydantic import ValidationError

from fakemachine import __version__
from fakemachine._logging import configure_logging
from fakemachine.exceptions import BackendUnsupportedError, FakemachineError
from fakemachine.models import BackendName, Image, MachineConfig, MountPoint
from fakemachine.registry import available_backends, backend_names, resolve

# Exit codes following Unix conventions
EXIT_CLI_ERROR = 2
EXIT_MACHINE_ERROR = 125


def parse_images(specs: tuple[str, ...]) -> list[Image]:
    """Parse PATH:LABEL image specs; index follows command-line order.

    Raises:
        click.BadParameter: If format is invalid
    """
    images: list[Image] = []
    for index, spec in enumerate(specs):
        path, sep, label = spec.rpartition(":")
        if not sep or not path or not label:
            raise click.BadParameter(
                f"Invalid image: '{spec}'. Use PATH:LABEL format.",
                param_hint="'-i' / '--image'",
            )
        images.append(Image(path=Path(path), label=label, index=index))
    return images


def parse_mounts(specs: tuple[str, ...]) -> list[MountPoint]:
    """Parse HOST:GUEST:LABEL[:static] mount specs.

    Raises:
        click.BadParameter: If format is invalid
    """
    mounts: list[MountPoint] = []
    for spec in specs:
        parts = spec.split(":")
        static = len(parts) == 4 and parts[3] == "static"
        if len(parts) not in (3, 4) or (len(parts) == 4 and not static) or not all(parts[:3]):
            raise click.BadParameter(
                f"Invalid mount: '{spec}'. Use HOST:GUEST:LABEL[:static] format.",
                param_hint="'--mount'",
            )
        host, guest, label = parts[:3]
        mounts.append(MountPoint(host_directory=Path(host), machine_directory=guest, label=label, static=static))
    return mounts


def format_error(title: str, message: str, suggestions: list[str] | None = None) -> str:
    """Format an error message following What → Why → Fix pattern."""
    lines = [
        click.style(f"Error: {title}", fg="red", bold=True),
        "",
        f"  {message}",
    ]

    if suggestions:
        lines.extend(["", "  Suggestions:"])
        lines.extend(f"    • {suggestion}" for suggestion in suggestions)

    return "\n".join(lines)


def shell_exit_code(returncode: int) -> int:
    """Map a signal death (negative returncode) to the shell's 128+N convention."""
    if returncode < 0:
        return 128 - returncode
    return returncode


async def run_machine(machine: MachineConfig) -> int:
    """Resolve the machine's backend, boot it and return the CLI exit code."""
    try:
        backend = await resolve(machine.backend, machine)
        return shell_exit_code(await backend.start())

    except BackendUnsupportedError as e:
        click.echo(
            format_error(
                "Backend not supported",
                e.message,
                [
                    "Run 'fakemachine backends' to see what this host supports",
                    "Pick another backend with -b/--backend",
                ],
            ),
            err=True,
        )
        return EXIT_MACHINE_ERROR

    except FakemachineError as e:
        click.echo(format_error("fakemachine error", e.message), err=True)
        return EXIT_MACHINE_ERROR


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
@click.option("-q", "--quiet", is_flag=True, help="Only log errors")
@click.version_option(__version__, "-V", "--version", prog_name="fakemachine")
def main(verbose: bool, quiet: bool) -> None:
    """Run jobs in a disposable virtual machine."""
    if verbose or quiet:
        configure_logging(level="DEBUG" if verbose else None, quiet=quiet)


@main.command()
def backends() -> None:
    """List backends and whether this host supports them."""
    status = asyncio.run(available_backends())
    for name, cause in status.items():
        if cause is None:
            click.echo(f"{name}: {click.style('supported', fg='green')}")
        else:
            click.echo(f"{name}: {click.style('unsupported', fg='yellow')} ({cause})")


@main.command()
@click.option(
    "-b",
    "--backend",
    type=click.Choice(backend_names()),
    default=BackendName.AUTO.value,
    show_default=True,
    help="Virtualization backend",
)
@click.option("-m", "--memory", default=2048, show_default=True, help="Memory in MB")
@click.option("-c", "--cpus", default=2, show_default=True, help="Number of vCPUs")
@click.option("--show-boot", is_flag=True, help="Show guest boot output")
@click.option(
    "--initrd",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Initrd to boot",
)
@click.option("-i", "--image", "images", multiple=True, help="Disk image as PATH:LABEL (repeatable)")
@click.option("--mount", "mounts", multiple=True, help="Shared directory as HOST:GUEST:LABEL[:static] (repeatable)")
def run(
    backend: str,
    memory: int,
    cpus: int,
    show_boot: bool,
    initrd: Path,
    images: tuple[str, ...],
    mounts: tuple[str, ...],
) -> NoReturn:
    """Boot the machine and exit with the guest's exit code."""
    try:
        machine = MachineConfig(
            memory_mb=memory,
            cpus=cpus,
            show_boot=show_boot,
            initrd_path=initrd,
            images=tuple(parse_images(images)),
            mounts=tuple(parse_mounts(mounts)),
            backend=BackendName(backend),
        )
    except click.BadParameter as exc:
        raise click.UsageError(str(exc)) from exc
    except ValidationError as exc:
        raise click.UsageError(f"Invalid machine configuration: {exc}") from exc

    sys.exit(asyncio.run(run_machine(machine)))


if __name__ == "__main__":
    main()
