#!/usr/bin/env python3
"""Build column schemas from a Melodi range table.

A range table lists the dataset concepts with their value codes and labels:

    [{'concept': {'code': 'SEXE', 'label': {'fr': 'Sexe'}},
      'values': [{'code': 'M', 'label': {'fr': 'Hommes'}}, ...]}, ...]
"""

from .utils import label_text


GEO_CONCEPTS = {'GEO', 'GEO_OBJECT'}
TIME_COLUMN = 'TIME_PERIOD'
GEO_FORMAT = 'geo-code'


# === Functional Core (Pure Functions - No I/O) ===

def concept_title(dimension):
    """Human-readable title of a range-table concept, its code as fallback."""
    concept = dimension.get('concept') or {}
    return label_text(concept.get('label')) or concept.get('code', '')


def value_labels(dimension):
    """Map every value code of a range-table concept to its label.

    Args:
        dimension: One range-table entry

    Returns:
        Dict like {'M': 'Hommes', 'F': 'Femmes'} (code used when unlabelled)
    """
    labels = {}
    for value in dimension.get('values') or []:
        labels[value['code']] = label_text(value.get('label')) or value['code']
    return labels


def dimension_descriptor(dimension):
    """Schema descriptor for one range-table concept."""
    code = dimension['concept']['code']
    descriptor = {
        'key': code.lower(),
        'title': concept_title(dimension),
        'type': 'string'
    }
    if code in GEO_CONCEPTS:
        descriptor['format'] = GEO_FORMAT
        return descriptor

    labels = value_labels(dimension)
    if labels:
        descriptor['x-labels'] = labels
    return descriptor


def generate_standard_schema(range_table):
    """Generate the schema of a flat (non-pivoted) export.

    Args:
        range_table: List of range-table entries (None allowed)

    Returns:
        One string descriptor per concept, then the numeric 'obs_value' column
    """
    schema = [dimension_descriptor(dim) for dim in (range_table or [])]
    schema.append({'key': 'obs_value', 'title': 'Valeur', 'type': 'number'})
    return schema


def geo_columns(range_table, columns):
    """Select the columns holding geography codes.

    The range table is the reference: a column is geographic when its
    descriptor carries the geo-code format. Columns the range table does
    not describe are matched against GEO_CONCEPTS.

    Args:
        range_table: List of range-table entries
        columns: Column names to classify

    Returns:
        Set of geographic column names
    """
    described = {
        dim['concept']['code']: dimension_descriptor(dim)
        for dim in (range_table or [])
    }
    geo = set()
    for column in columns:
        descriptor = described.get(column)
        if descriptor is not None:
            if descriptor.get('format') == GEO_FORMAT:
                geo.add(column)
        elif column in GEO_CONCEPTS:
            geo.add(column)
    return geo


def generate_pivot_schema(columns_to_keep, dynamic_headers, range_table):
    """Generate the schema of a pivoted export.

    Args:
        columns_to_keep: Fixed row columns, in output order (e.g. ['GEO', 'TIME_PERIOD'])
        dynamic_headers: Dict of synthesized column key -> title
        range_table: List of range-table entries

    Returns:
        Fixed column descriptors, then one number descriptor per dynamic
        column sorted by key
    """
    dimensions = {dim['concept']['code']: dim for dim in (range_table or [])}
    geo = geo_columns(range_table, columns_to_keep)

    schema = []
    for column in columns_to_keep:
        if column in geo:
            schema.append({'key': column.lower(), 'title': 'Code Insee',
                           'type': 'string', 'format': GEO_FORMAT})
        elif column == TIME_COLUMN:
            schema.append({'key': column.lower(), 'title': 'Période',
                           'type': 'string', 'format': 'date'})
        elif column in dimensions:
            schema.append(dimension_descriptor(dimensions[column]))
        else:
            schema.append({'key': column.lower(), 'title': column, 'type': 'string'})

    for key in sorted(dynamic_headers):
        schema.append({'key': key, 'title': dynamic_headers[key] or key, 'type': 'number'})

    return schema
