"""Shapefile inspection commands."""

from pathlib import Path

import click
from parkledger.cli.error_handling import handle_domain_error
from parkledger.domain.field_mapping import get_owner_mappable_fields, get_plot_mappable_fields
from parkledger.domain.shapefile_import import ShapefileImportService


@click.group()
def shapefile_group():
    """Inspect ALKIS shapefile exports."""
    pass


def _echo_mapping(title: str, fields, mapping: dict[str, str | None]) -> None:
    click.echo(f"\n{title}:")
    for field in fields:
        source = mapping.get(field.key) or "-"
        marker = " *" if field.required else ""
        click.echo(f"  {field.label + marker:28s} <- {source}")


@shapefile_group.command("inspect")
@click.argument("zip_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--encoding", help="Attribute encoding (overrides the .cpg file)")
@click.option("--limit", type=int, default=5, show_default=True, help="Number of parcels to show")
@click.pass_context
def inspect_shapefile(ctx, zip_path: Path, encoding: str | None, limit: int):
    """Parse a shapefile ZIP and show fields, proposed mappings and parcels.

    Examples:
        parkledger shapefile inspect flurstuecke.zip
        parkledger shapefile inspect export.zip --encoding cp1252 --limit 20
    """
    service = ShapefileImportService()
    try:
        result = service.import_zip(zip_path.read_bytes(), zip_path.name, encoding=encoding)
    except ValueError as e:
        handle_domain_error(ctx, e)

    click.echo(f"\n{zip_path.name}: {len(result.parcels)} parcel(s)")
    click.echo(f"CRS: {result.crs or 'unknown (coordinates used as-is)'}")
    click.echo(f"Fields: {', '.join(result.fields)}")

    for warning in result.warnings:
        click.echo(f"Warning: {warning}", err=True)

    _echo_mapping("Plot mapping", get_plot_mappable_fields(), result.plot_mapping)
    _echo_mapping("Owner mapping", get_owner_mappable_fields(), result.owner_mapping)

    click.echo("\nParcels:")
    click.echo("-" * 78)
    for parcel in result.parcels[:limit]:
        plot = parcel.plot
        owner = parcel.owner
        area = f"{parcel.computed_area_sqm:,.0f} m²" if parcel.computed_area_sqm is not None else "-"
        owner_name = owner.name or " ".join(p for p in (owner.first_name, owner.last_name) if p) or "-"
        multi = " (mehrere Eigentümer)" if owner.is_multi_owner else ""
        click.echo(
            f"{parcel.feature_id:4d} | {plot.cadastral_district or '-'} Flur {plot.field_number or '-'} "
            f"Flst. {plot.plot_number or '-'} | {area} | "
            f"{parcel.centroid.lat:.6f}, {parcel.centroid.lng:.6f} | {owner_name}{multi}"
        )
    if len(result.parcels) > limit:
        click.echo(f"... {len(result.parcels) - limit} more")


def register_commands(cli):
    """Register shapefile commands with main CLI."""
    cli.add_command(shapefile_group, name="shapefile")
