"""
BulkService - CSV import helpers for mass accreditation.

Spreadsheets arrive with headers in many spellings ("RUT (xxxxxxxx-x)",
"Organización", "Área claro arena / Cruzados"). Headers are normalized
and mapped onto registration field names before rows reach
RegistrationService.create_bulk.
"""

import csv
import io
import re
import unicodedata
from typing import Any, Dict, List, Optional

BULK_HEADER_MAP = {
    'rut': 'rut',
    'rut_xxxxxxxx-x': 'rut',
    'rut_(xxxxxxxx-x)': 'rut',
    'nombre': 'nombre',
    'first_name': 'nombre',
    'apellido': 'apellido',
    'last_name': 'apellido',
    'email': 'email',
    'correo': 'email',
    'mail': 'email',
    'telefono': 'telefono',
    'celular': 'telefono',
    'fono': 'telefono',
    'phone': 'telefono',
    'cargo': 'cargo',
    'funcion': 'cargo',
    'rol': 'cargo',
    'acreditacion': 'cargo',
    'empresa': 'empresa',
    'organizacion': 'empresa',
    'medio': 'empresa',
    'organization': 'empresa',
    'tipo_medio': 'tipo_medio',
    'tipo': 'tipo_medio',
    'area': 'area',
    'area_claro_arena_/_cruzados': 'area',
    'zona': 'zona',
    'zone': 'zona',
    'patente': 'patente',
    'patente_(opcional)': 'patente',
    'cantidad': 'cantidad',
}

TEMPLATE_BASE_HEADERS = ['Nombre', 'Apellido', 'RUT', 'Email', 'Cargo', 'Empresa', 'Tipo Medio', 'Zona', 'Patente']
TEMPLATE_EXAMPLE_ROW = ['Juan', 'Pérez González', '12.345.678-5', 'juan@medio.cl', 'Periodista',
                        'Radio Ejemplo', 'Radio', '', '']

CELL_SEPARATOR = re.compile(r'[,;\t]')
LINE_SEPARATOR = re.compile(r'\r?\n')


def normalize_header(header: str) -> str:
    """
    Canonical form of a spreadsheet header.

    Example:
        >>> normalize_header('  Organización ')
        'organizacion'
        >>> normalize_header('RUT (xxxxxxxx-x)')
        'rut_(xxxxxxxx-x)'
    """
    decomposed = unicodedata.normalize('NFD', (header or '').strip().lower())
    stripped = ''.join(ch for ch in decomposed if not unicodedata.combining(ch))
    return re.sub(r'\s+', '_', stripped)


def map_header(header: str) -> str:
    normalized = normalize_header(header)
    return BULK_HEADER_MAP.get(normalized, normalized)


def _clean_cell(cell: str) -> str:
    return cell.strip().strip('"').strip("'").strip()


def parse_csv_text(text: str) -> List[Dict[str, Any]]:
    """
    Parse pasted or uploaded CSV text into registration rows.

    The first non-empty line holds the headers. Cells may be separated by
    commas, semicolons or tabs. Rows without rut and nombre are dropped.

    Returns:
        List of dicts with at least rut, nombre and apellido keys
    """
    lines = [line for line in LINE_SEPARATOR.split(text or '') if line.strip()]
    if len(lines) < 2:
        return []

    headers = [map_header(_clean_cell(h)) for h in CELL_SEPARATOR.split(lines[0])]
    rows = []
    for line in lines[1:]:
        cells = [_clean_cell(c) for c in CELL_SEPARATOR.split(line)]
        row: Dict[str, Any] = {'rut': '', 'nombre': '', 'apellido': ''}
        for index, header in enumerate(headers):
            if not header or index >= len(cells):
                continue
            if cells[index]:
                row[header] = cells[index]
        if row.get('empresa'):
            row['organizacion'] = row['empresa']
        if row['rut'] or row['nombre']:
            rows.append(row)
    return rows


def decode_upload(raw: bytes) -> str:
    """Decode an uploaded file, tolerating a BOM and latin-1 exports."""
    try:
        return raw.decode('utf-8-sig')
    except UnicodeDecodeError:
        return raw.decode('latin-1')


def build_template_csv(form_fields: Optional[List[Dict[str, Any]]] = None) -> str:
    """
    CSV template for mass accreditation.

    Base columns come first, followed by the labels of the event's own
    form fields that are not already covered.
    """
    headers = list(TEMPLATE_BASE_HEADERS)
    known = {map_header(h) for h in headers}
    for field in form_fields or []:
        label = field.get('label') or field.get('key')
        if not label:
            continue
        if map_header(label) in known or map_header(field.get('key') or '') in known:
            continue
        headers.append(label)
        known.add(map_header(label))

    example = TEMPLATE_EXAMPLE_ROW + [''] * (len(headers) - len(TEMPLATE_EXAMPLE_ROW))

    buffer = io.StringIO()
    buffer.write('\ufeff')
    writer = csv.writer(buffer, lineterminator='\r\n')
    writer.writerow(headers)
    writer.writerow(example)
    return buffer.getvalue()
