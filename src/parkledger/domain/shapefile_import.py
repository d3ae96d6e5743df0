"""Shapefile import domain service."""

import logging
from typing import Optional

from parkledger.domain.entities import ImportedParcel, ShapefileImportResult
from parkledger.domain.field_mapping import (
    FieldMapping,
    apply_owner_mapping,
    apply_plot_mapping,
    auto_detect_owner_mapping,
    auto_detect_plot_mapping,
)
from parkledger.domain.shapefile_parser import parse_shapefile

logger = logging.getLogger(__name__)


class ShapefileImportService:
    """Service for turning uploaded ALKIS shapefiles into parcel records."""

    def import_zip(
        self,
        buffer: bytes,
        file_name: str,
        plot_mapping: Optional[FieldMapping] = None,
        owner_mapping: Optional[FieldMapping] = None,
        encoding: Optional[str] = None,
    ) -> ShapefileImportResult:
        """Parse a shapefile ZIP and map every feature to plot and owner data.

        Mappings not given are auto-detected from the shapefile's field
        names. A partial mapping overrides only the entries it names.

        Args:
            buffer: Raw ZIP bytes
            file_name: Upload name, used in messages
            plot_mapping: Semantic plot field -> shapefile field overrides
            owner_mapping: Semantic owner field -> shapefile field overrides
            encoding: DBF encoding overriding the archive's ``.cpg``

        Returns:
            ShapefileImportResult with one parcel per feature

        Raises:
            DecodeError: If the shapefile cannot be parsed
        """
        parsed = parse_shapefile(buffer, file_name, encoding=encoding)
        fields = list(parsed.fields)

        effective_plot_mapping = auto_detect_plot_mapping(fields)
        if plot_mapping:
            effective_plot_mapping.update(plot_mapping)
        effective_owner_mapping = auto_detect_owner_mapping(fields)
        if owner_mapping:
            effective_owner_mapping.update(owner_mapping)

        parcels = tuple(
            ImportedParcel(
                feature_id=feature.id,
                plot=apply_plot_mapping(feature.properties, effective_plot_mapping),
                owner=apply_owner_mapping(feature.properties, effective_owner_mapping),
                centroid=feature.centroid,
                computed_area_sqm=feature.area_sqm,
            )
            for feature in parsed.features
        )

        multi_owner = sum(1 for parcel in parcels if parcel.owner.is_multi_owner)
        logger.info(
            "Imported %d parcel(s) from %s (%d with multiple owners)",
            len(parcels), file_name, multi_owner,
        )
        return ShapefileImportResult(
            parcels=parcels,
            fields=parsed.fields,
            crs=parsed.crs,
            warnings=parsed.warnings,
            plot_mapping=effective_plot_mapping,
            owner_mapping=effective_owner_mapping,
        )
