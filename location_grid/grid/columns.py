from __future__ import annotations

from location_grid.models.column import ColumnDescriptor, ColumnOption, ColumnType, EntitySchema

"""Code-defined column configuration for the locations grid.

Column order here is the grid's display order and also the positional
mapping used when pasted text has no header row. HEADER_ALIASES maps the
lower-cased spreadsheet headers users commonly paste (including historic
typos) to column keys; column keys and labels are matched as well.
"""

__all__ = [
    "LOCATION_COLUMNS",
    "HEADER_ALIASES",
    "LOCATIONS",
    "PAGE_SIZE_OPTIONS",
    "SCHEMAS",
    "schema_for",
]

PAGE_SIZE_OPTIONS = (25, 50, 100, 250)


def _col(
    key: str,
    label: str,
    type_: ColumnType,
    width: int,
    fmt: str | None = None,
    *,
    required: bool = False,
    options: tuple[ColumnOption, ...] = (),
) -> ColumnDescriptor:
    return ColumnDescriptor(
        key=key, label=label, type=type_, options=options, width=width, format=fmt, required=required
    )


def _options(*values: str) -> tuple[ColumnOption, ...]:
    return tuple(ColumnOption(value=v, label=v) for v in values)


ISO_CONST_OPTIONS = _options("1", "2", "3", "4", "5", "6", "Combo")

CONSTRUCTION_OPTIONS = _options(
    "Frame",
    "Joisted Masonry",
    "Non-Combustible",
    "Masonry Non-Combustible",
    "Modified Fire Resistive",
    "Fire Resistive",
    "Combo",
)

LOCATION_COLUMNS: tuple[ColumnDescriptor, ...] = (
    _col("location_name", "Location Name", ColumnType.TEXT, 200, required=True),
    _col("company", "Company", ColumnType.TEXT, 150),
    _col("street_address", "Street Address", ColumnType.TEXT, 200),
    _col("city", "City", ColumnType.TEXT, 120),
    _col("state", "State", ColumnType.TEXT, 80),
    _col("zip", "Zip", ColumnType.TEXT, 80),
    _col("county", "County", ColumnType.TEXT, 120),
    _col("full_address", "Full Address", ColumnType.TEXT, 250),
    _col("latitude", "Latitude", ColumnType.NUMBER, 100),
    _col("longitude", "Longitude", ColumnType.NUMBER, 100),
    _col("region", "Region", ColumnType.TEXT, 100),
    _col("num_buildings", "# of Bldgs", ColumnType.NUMBER, 90),
    _col("num_units", "# of Units", ColumnType.NUMBER, 90),
    _col("square_footage", "Square Footage", ColumnType.NUMBER, 120, "number"),
    _col("num_stories", "# of Stories", ColumnType.NUMBER, 90),
    _col("current_buildings", "Current Buildings", ColumnType.TEXT, 130),
    _col("iso_const", "ISO Const", ColumnType.SELECT, 100, options=ISO_CONST_OPTIONS),
    _col("construction_description", "Construction Description", ColumnType.SELECT, 200, options=CONSTRUCTION_OPTIONS),
    _col("orig_year_built", "Orig Year Built", ColumnType.TEXT, 120),
    _col("yr_bldg_updated", "Yr Bldg Updated", ColumnType.TEXT, 120),
    _col("occupancy", "Occupancy", ColumnType.TEXT, 150),
    _col("percent_sprinklered", "Percent Sprinklered", ColumnType.TEXT, 130),
    _col("iso_prot_class", "Iso Prot Class", ColumnType.TEXT, 110),
    _col("sprinklered", "Sprinklered (Y/N)", ColumnType.TEXT, 120),
    _col("real_property_value", "Real Property Value", ColumnType.CURRENCY, 150, "currency"),
    _col("personal_property_value", "Personal Property Value", ColumnType.CURRENCY, 160, "currency"),
    _col("other_value", "Other Value $", ColumnType.CURRENCY, 120, "currency"),
    _col("bi_rental_income", "BI/Rental Income", ColumnType.CURRENCY, 140, "currency"),
    _col("total_tiv", "Total TIV", ColumnType.CURRENCY, 130, "currency"),
    _col("deductible", "Deductible", ColumnType.TEXT, 100),
    _col("nws_deductible", "NWS Deductible", ColumnType.TEXT, 120),
    _col("wind_hail_deductible", "Wind/Hail Deductible", ColumnType.TEXT, 140),
    _col("self_insured_retention", "Self Insured Retention", ColumnType.TEXT, 150),
    _col("tiv_if_tier_1_wind_yes", "TIV If Tier 1 Wind Yes", ColumnType.CURRENCY, 150, "currency"),
    _col("flood_zone", "Flood Zone", ColumnType.TEXT, 100),
    _col("is_prop_within_1000ft_saltwater", "Within 1000ft Saltwater", ColumnType.TEXT, 170),
    _col("tier_1_wind", "Tier 1 Wind", ColumnType.TEXT, 100),
    _col("coastal_flooding", "Coastal Flooding", ColumnType.TEXT, 130),
    _col("coastal_flooding_risk", "Coastal Flooding Risk", ColumnType.TEXT, 150),
    _col("earthquake", "Earthquake", ColumnType.TEXT, 100),
    _col("earthquake_risk", "Earthquake Risk", ColumnType.TEXT, 130),
    _col("strong_wind", "Strong Wind", ColumnType.TEXT, 100),
    _col("tornado", "Tornado", ColumnType.TEXT, 90),
    _col("tornado_risk", "Tornado Risk", ColumnType.TEXT, 110),
    _col("wildfire", "Wildfire", ColumnType.TEXT, 90),
    _col("wildfire_risk", "Wildfire Risk", ColumnType.TEXT, 110),
    _col("entity_name", "Entity Name", ColumnType.TEXT, 200),
    _col("lenders", "Lenders", ColumnType.TEXT, 200),
    _col("lender_name_rollup", "Lender Name Rollup", ColumnType.TEXT, 180),
    _col("policies", "Policies", ColumnType.TEXT, 120),
    _col("policy", "Policy", ColumnType.TEXT, 120),
    _col("policy_id", "Policy ID", ColumnType.TEXT, 100),
    _col("coverage", "Coverage", ColumnType.TEXT, 200),
    _col("loss_run_summary", "Loss Run Summary", ColumnType.TEXT, 150),
    _col("policies_25_26", "25-26 Policies", ColumnType.TEXT, 120),
    _col("epi", "EPI", ColumnType.TEXT, 80),
    _col("epi_certificate", "EPI Certificate", ColumnType.TEXT, 120),
    _col("epi_certificate_recipients", "EPI Certificate Recipients", ColumnType.TEXT, 180),
    _col("epi_certificate_to_use", "EPI Certificate To Use", ColumnType.TEXT, 160),
    _col("epi_certificate_to_use_name", "EPI Certificate Name", ColumnType.TEXT, 160),
    _col("location_epi_additional_remarks", "EPI Additional Remarks", ColumnType.TEXT, 180),
    _col("is_commercial_coverage_blanket", "Commercial Coverage Blanket", ColumnType.TEXT, 190),
    _col("coi_certificate", "COI Certificate", ColumnType.TEXT, 120),
    _col("coi_certificate_recipients", "COI Certificate Recipients", ColumnType.TEXT, 180),
    _col("coi_certificate_to_use", "COI Certificate To Use", ColumnType.TEXT, 160),
    _col("coi_location_specific_additional_remarks", "COI Additional Remarks", ColumnType.TEXT, 180),
    _col("claims", "Claims", ColumnType.TEXT, 100),
    _col("documents_for_location", "Documents for Location", ColumnType.TEXT, 160),
    _col("open_claim_rollup", "Open Claim Rollup", ColumnType.NUMBER, 130),
    _col("total_open_claims_rollup", "Total Open Claims Rollup", ColumnType.CURRENCY, 160, "currency"),
    _col("total_incurred_five_years_prop", "Total Incurred 5Yr Prop", ColumnType.CURRENCY, 160, "currency"),
    _col("total_incurred_five_years_gl", "Total Incurred 5Yr GL", ColumnType.CURRENCY, 160, "currency"),
    _col("status", "Status", ColumnType.TEXT, 100),
    _col("date_sold", "Date Sold", ColumnType.DATE, 100),
    _col("projected_close_date", "Projected Close Date", ColumnType.DATE, 150),
    _col("acquisitions_clients", "Acquisitions Clients", ColumnType.TEXT, 150),
    _col("acquisition_address", "Acquisition Address", ColumnType.TEXT, 180),
    _col("om", "OM", ColumnType.TEXT, 80),
    _col("source_id", "ID", ColumnType.TEXT, 80),
    _col("id_location", "ID-Location", ColumnType.TEXT, 120),
    _col("latitude_python", "Latitude (Python)", ColumnType.NUMBER, 120),
    _col("longitude_python", "Longitude (Python)", ColumnType.NUMBER, 120),
    _col("state_from_state", "State (from State)", ColumnType.TEXT, 120),
    _col("condensed_city_state_zip", "Condensed CityStateZip", ColumnType.TEXT, 180),
    _col("zipcode_trimmed", "Zipcode Trimmed", ColumnType.TEXT, 110),
)

HEADER_ALIASES: dict[str, str] = {
    "location name": "location_name",
    "company": "company",
    "street address": "street_address",
    "city": "city",
    "state": "state",
    "zip": "zip",
    "county": "county",
    "full address": "full_address",
    "latitude": "latitude",
    "longitude": "longitude",
    "latitude-python": "latitude_python",
    "longitude-python": "longitude_python",
    "region": "region",
    "region (from state)": "region",
    "state (from state)": "state_from_state",
    "condensed citystatezip": "condensed_city_state_zip",
    "zipcode trimmed": "zipcode_trimmed",
    "# of bldgs": "num_buildings",
    "number of bldgs": "num_buildings",
    "# of units": "num_units",
    "number of units": "num_units",
    "square footage": "square_footage",
    "# of stories": "num_stories",
    "number of stories": "num_stories",
    "current buildings": "current_buildings",
    "iso const": "iso_const",
    "construction description": "construction_description",
    "orig year built": "orig_year_built",
    "yr bldg updated (mand if >25 yrs)": "yr_bldg_updated",
    "yr bldg updated": "yr_bldg_updated",
    "occupancy": "occupancy",
    "percent sprinklered": "percent_sprinklered",
    "iso prot class": "iso_prot_class",
    "sprinklered (y/n)": "sprinklered",
    "sprinklered": "sprinklered",
    "real property value": "real_property_value",
    "personal property value": "personal_property_value",
    "other value $ (outdoor prop & eqpt must be sch'd)": "other_value",
    "other value $": "other_value",
    "other value": "other_value",
    "bi/rental income": "bi_rental_income",
    "total tiv": "total_tiv",
    "deductible": "deductible",
    "nws deductible": "nws_deductible",
    "wind/hail deductible": "wind_hail_deductible",
    "self insured rentention": "self_insured_retention",
    "self insured retention": "self_insured_retention",
    "tiv if tier 1 wind yes": "tiv_if_tier_1_wind_yes",
    "flood zone": "flood_zone",
    "is prop within 1000 ft of saltwater": "is_prop_within_1000ft_saltwater",
    "is prop within 1000ft saltwater": "is_prop_within_1000ft_saltwater",
    "tier 1 wind": "tier_1_wind",
    "coastal flooding": "coastal_flooding",
    "coastal flooding risk": "coastal_flooding_risk",
    "earthquake": "earthquake",
    "earthquake risk": "earthquake_risk",
    "strong wind": "strong_wind",
    "tornado": "tornado",
    "tornado risk": "tornado_risk",
    "wildfire": "wildfire",
    "wildfire risk": "wildfire_risk",
    "entity name": "entity_name",
    "lenders": "lenders",
    "lender name rollup (from lenders)": "lender_name_rollup",
    "lender name rollup": "lender_name_rollup",
    "policies": "policies",
    "policy": "policy",
    "policy id": "policy_id",
    "coverage": "coverage",
    "coverage (from 25-26 policies)": "coverage",
    "loss run summary": "loss_run_summary",
    "25-26 policies": "policies_25_26",
    "epi": "epi",
    "epi certificate": "epi_certificate",
    "epi certificate recipients": "epi_certificate_recipients",
    "epi certificate to use": "epi_certificate_to_use",
    "name (from epi certificate to use)": "epi_certificate_to_use_name",
    "location epi additional remarks": "location_epi_additional_remarks",
    "is the commercial coverage property blanket or broken out by location (from epi)": "is_commercial_coverage_blanket",
    "coi certificate": "coi_certificate",
    "coi certificate recipients": "coi_certificate_recipients",
    "coi certificate to use": "coi_certificate_to_use",
    "coi location specific additional remarks": "coi_location_specific_additional_remarks",
    "claims": "claims",
    "documents for location": "documents_for_location",
    "open claim rollup (from claims)": "open_claim_rollup",
    "open claim rollup": "open_claim_rollup",
    "total open claims rollup (from claims)": "total_open_claims_rollup",
    "total open claims rollup": "total_open_claims_rollup",
    "total incurred five years prop": "total_incurred_five_years_prop",
    "total incurred five years gl": "total_incurred_five_years_gl",
    "status": "status",
    "date sold": "date_sold",
    "projected close date": "projected_close_date",
    "acquistions clients": "acquisitions_clients",
    "acquisitions clients": "acquisitions_clients",
    "acquisition address": "acquisition_address",
    "om": "om",
    "id": "source_id",
    "id-location": "id_location",
}

LOCATIONS = EntitySchema(
    entity="locations",
    columns=LOCATION_COLUMNS,
    header_aliases=HEADER_ALIASES,
    # source_id / id_location は取込元の識別子: 複製時はクリア
    unique_fields=frozenset({"source_id", "id_location"}),
    import_skip_fields=frozenset({"id", "source_id"}),
    search_columns=("location_name", "city", "state", "street_address"),
    new_row_defaults={"location_name": "New Location"},
    copy_label_column="location_name",
    default_order="location_name",
)

SCHEMAS: dict[str, EntitySchema] = {LOCATIONS.entity: LOCATIONS}


def schema_for(entity: str) -> EntitySchema:
    try:
        return SCHEMAS[entity]
    except KeyError:
        raise KeyError(f"no column configuration for entity: {entity}") from None
