"""Command-line interface for digitizing coal log book tables."""

import asyncio
import logging
import shlex
import sys
from pathlib import Path
from typing import Optional

import click

from .acquire import capture_from_camera, load_image_file
from .config import Settings, load_settings
from .errors import CoalLogError
from .export import to_csv
from .extract import MockExtractor
from .storage import LocalStore, load_records
from .table import TableModel
from .wizard import Exported, WizardController

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)

REVIEW_HELP = """Commands:
  show                 print the table
  set ROW COL VALUE    replace one cell (0-based indices)
  add                  append an empty row
  del ROW              delete a row
  csv                  write the CSV file
  excel                write the Excel workbook
  save                 append a snapshot to local storage
  quit                 leave the session"""


def build_controller(settings: Settings, latency: Optional[float] = None) -> WizardController:
    extractor = MockExtractor(latency=settings.latency_seconds if latency is None else latency)
    return WizardController(
        extractor,
        csv_filename=settings.csv_filename,
        excel_filename=settings.excel_filename,
        storage_key=settings.storage_key,
        encoding=settings.encoding,
    )


async def _extract_image(controller: WizardController, image) -> TableModel:
    controller.select_image(image)
    controller.confirm_crop()
    return await controller.extract()


def format_table(table: TableModel) -> str:
    """Render a table as aligned text with row numbers."""
    widths = [len(h) for h in table.headers]
    for row in table.rows:
        widths = [max(w, len(cell)) for w, cell in zip(widths, row)]

    def line(prefix, cells):
        return f"{prefix:>4}  " + '  '.join(cell.ljust(w) for cell, w in zip(cells, widths))

    lines = [line('#', table.headers)]
    lines.extend(line(str(i), row) for i, row in enumerate(table.rows))
    return '\n'.join(lines)


def _finish_exports(controller: WizardController, settings: Settings, output_dir: Path,
                    save: bool, excel: bool):
    csv_path = controller.export_csv(output_dir)
    click.echo(f"CSV written: {csv_path}")
    if excel:
        excel_path = controller.export_excel(output_dir)
        click.echo(f"Excel written: {excel_path}")
    if save:
        record = controller.save(LocalStore(settings.storage_directory))
        click.echo(f"Saved record {record.id} to {settings.storage_directory}")


@click.group()
@click.option('--config', 'config_path', type=click.Path(path_type=Path),
              default=Path('config/settings.yml'), show_default=True,
              help='Path to settings file')
@click.option('--debug', is_flag=True, help='Enable debug output')
@click.pass_context
def cli(ctx, config_path: Path, debug: bool):
    """Coal Log Digitizer - convert log book tables to CSV."""
    if debug:
        logging.getLogger().setLevel(logging.DEBUG)
    try:
        ctx.obj = load_settings(config_path)
    except CoalLogError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.argument('image_path', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--out', 'output_dir', default=Path('.'), type=click.Path(path_type=Path),
              help='Output directory for the CSV file')
@click.option('--latency', type=float, default=None, help='Override the extraction delay (seconds)')
@click.option('--save', is_flag=True, help='Also append the table to local storage')
@click.option('--excel', is_flag=True, help='Also write an Excel workbook')
@click.pass_obj
def extract(settings: Settings, image_path: Path, output_dir: Path, latency: Optional[float],
            save: bool, excel: bool):
    """
    Extract the table from an image and export it.

    Example:
        coal-log extract ./photos/log_page.jpg --out ./out --save
    """
    try:
        controller = build_controller(settings, latency)
        image = load_image_file(image_path)
        click.echo("Processing image...")
        table = asyncio.run(_extract_image(controller, image))
        click.echo(format_table(table))
        _finish_exports(controller, settings, output_dir, save, excel)
    except CoalLogError as e:
        logger.error(f"Extraction failed: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option('--device', type=int, default=None, help='Camera index (default from settings)')
@click.option('--out', 'output_dir', default=Path('.'), type=click.Path(path_type=Path),
              help='Output directory for the CSV file')
@click.option('--latency', type=float, default=None, help='Override the extraction delay (seconds)')
@click.option('--save', is_flag=True, help='Also append the table to local storage')
@click.pass_obj
def capture(settings: Settings, device: Optional[int], output_dir: Path,
            latency: Optional[float], save: bool):
    """Capture a photo from the camera, extract it and export the CSV."""
    try:
        controller = build_controller(settings, latency)
        image = capture_from_camera(settings.camera_device if device is None else device)
        table = asyncio.run(_extract_image(controller, image))
        click.echo(format_table(table))
        _finish_exports(controller, settings, output_dir, save, excel=False)
    except CoalLogError as e:
        logger.error(f"Capture failed: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option('--out', 'output_dir', default=None, type=click.Path(path_type=Path),
              help='Write the CSV file here instead of printing it')
@click.pass_obj
def example(settings: Settings, output_dir: Optional[Path]):
    """Print the example coal log table as CSV."""
    controller = build_controller(settings)
    controller.load_example_data()
    if output_dir is None:
        click.echo(to_csv(controller.table))
        return
    try:
        click.echo(f"CSV written: {controller.export_csv(output_dir)}")
    except CoalLogError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _review_command(controller: WizardController, settings: Settings, output_dir: Path,
                    line: str) -> bool:
    """Apply one review command. Returns False when the session should end."""
    parts = shlex.split(line)
    if not parts:
        return True
    command, args = parts[0].lower(), parts[1:]

    if command in ('quit', 'exit', 'q'):
        return False
    if command in ('set', 'add', 'del') and isinstance(controller.state, Exported):
        # Exports do not end the session; keep editing the same table
        controller.resume_editing()
    if command == 'help':
        click.echo(REVIEW_HELP)
    elif command == 'show':
        click.echo(format_table(controller.table))
    elif command == 'set' and len(args) >= 3:
        controller.set_cell(int(args[0]), int(args[1]), ' '.join(args[2:]))
        click.echo(f"Cell ({args[0]}, {args[1]}) updated")
    elif command == 'add' and not args:
        controller.add_row()
        click.echo(f"Row {len(controller.table) - 1} added")
    elif command == 'del' and len(args) == 1:
        controller.delete_row(int(args[0]))
        click.echo(f"Row {args[0]} deleted")
    elif command == 'csv':
        click.echo(f"CSV written: {controller.export_csv(output_dir)}")
    elif command == 'excel':
        click.echo(f"Excel written: {controller.export_excel(output_dir)}")
    elif command == 'save':
        record = controller.save(LocalStore(settings.storage_directory))
        click.echo(f"Data saved successfully (record {record.id})")
    else:
        click.echo(f"Unknown command: {line}")
        click.echo(REVIEW_HELP)
    return True


@cli.command()
@click.argument('image_path', required=False,
                type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--example', 'use_example', is_flag=True, help='Review the example data instead of an image')
@click.option('--out', 'output_dir', default=Path('.'), type=click.Path(path_type=Path),
              help='Output directory for exports')
@click.option('--latency', type=float, default=None, help='Override the extraction delay (seconds)')
@click.pass_obj
def review(settings: Settings, image_path: Optional[Path], use_example: bool,
           output_dir: Path, latency: Optional[float]):
    """Extract a table and edit it interactively before exporting."""
    if (image_path is None) == (not use_example):
        raise click.UsageError("Give either IMAGE_PATH or --example")

    controller = build_controller(settings, latency)
    try:
        if use_example:
            controller.load_example_data()
        else:
            click.echo("Processing image...")
            asyncio.run(_extract_image(controller, load_image_file(image_path)))
    except CoalLogError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(format_table(controller.table))
    click.echo(REVIEW_HELP)

    while True:
        try:
            line = click.prompt('coal-log', prompt_suffix='> ', default='', show_default=False)
        except click.Abort:
            break
        try:
            if not _review_command(controller, settings, output_dir, line):
                break
        except (IndexError, ValueError) as e:
            click.echo(f"Invalid input: {e}")
        except CoalLogError as e:
            # Failed saves leave the table intact; the user can retry or export CSV
            click.echo(f"Error: {e}", err=True)


@cli.command()
@click.pass_obj
def history(settings: Settings):
    """List tables saved to local storage."""
    records = load_records(LocalStore(settings.storage_directory), settings.storage_key)
    if not records:
        click.echo("No saved records")
        return
    for record in records:
        click.echo(f"{record.id}  {record.timestamp}  {len(record.data)} rows")


if __name__ == '__main__':
    cli()
