"""
ExportService - CSV exports of registrations.

Two layouts:
- full: up to 18 admin columns, optionally narrowed with ?columns=a,b,c
- puntoticket: the 7-column layout expected by the ticketing provider

Files are UTF-8 with BOM and ';' delimiters so spreadsheet apps in
Spanish locales open them directly.
"""

import csv
import io
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

EXPORT_COLUMNS: List[Tuple[str, str]] = [
    ('nombre', 'Nombre'),
    ('primer_apellido', 'Primer Apellido'),
    ('segundo_apellido', 'Segundo Apellido'),
    ('rut', 'RUT'),
    ('email', 'Email'),
    ('cargo', 'Cargo'),
    ('tipo_credencial', 'Tipo Credencial'),
    ('n_credencial', 'N° Credencial'),
    ('empresa', 'Empresa'),
    ('area', 'Área'),
    ('zona', 'Zona'),
    ('estado', 'Estado'),
    ('resp_nombre', 'Responsable'),
    ('resp_primer_ap', 'Primer Apellido Resp.'),
    ('resp_segundo_ap', 'Segundo Apellido Resp.'),
    ('resp_rut', 'RUT Responsable'),
    ('resp_email', 'Email Responsable'),
    ('resp_telefono', 'Teléfono Responsable'),
]
EXPORT_COLUMN_KEYS = [key for key, _ in EXPORT_COLUMNS]
EXPORT_HEADERS = dict(EXPORT_COLUMNS)

PUNTOTICKET_COLUMNS: List[Tuple[str, str]] = [
    ('nombre', 'Nombre'),
    ('apellido', 'Apellido'),
    ('rut', 'RUT'),
    ('empresa', 'Empresa'),
    ('area', 'Area claro arena/Cruzados'),
    ('zona', 'Zona'),
    ('patente', 'Patente'),
]

STATUS_LABELS = {
    'pendiente': 'Pendiente',
    'aprobado': 'Aprobado',
    'rechazado': 'Rechazado',
    'revision': 'En revisión',
}

FORMAT_FULL = 'full'
FORMAT_PUNTOTICKET = 'puntoticket'

CSV_DELIMITER = ';'
UTF8_BOM = '\ufeff'


def filter_columns(param: Optional[str]) -> List[str]:
    """
    Column keys requested through ?columns=.

    Unknown keys are dropped and the requested order is kept; an empty
    parameter, or one with no valid key, selects every column.

    Example:
        >>> filter_columns('rut,nombre,foo')
        ['rut', 'nombre']
    """
    if not param:
        return list(EXPORT_COLUMN_KEYS)
    keys = [key.strip() for key in param.split(',') if key.strip() in EXPORT_HEADERS]
    return keys or list(EXPORT_COLUMN_KEYS)


def extract_field(row: Dict[str, Any], key: str) -> str:
    """Value from datos_extra, then the profile's datos_base, else ''."""
    extras = row.get('datos_extra') or {}
    if extras.get(key):
        return str(extras[key])
    datos_base = row.get('profile_datos_base') or {}
    if datos_base.get(key):
        return str(datos_base[key])
    return ''


def split_apellidos(apellido: str, segundo: Optional[str] = None) -> Tuple[str, str]:
    """
    Split a full surname into (primer, segundo) unless the second one is explicit.

    Example:
        >>> split_apellidos('González Pérez')
        ('González', 'Pérez')
    """
    apellido = apellido or ''
    if segundo:
        return apellido, segundo
    parts = apellido.split()
    if len(parts) >= 2:
        return parts[0], ' '.join(parts[1:])
    return apellido, ''


def build_export_row(row: Dict[str, Any]) -> Dict[str, str]:
    """All 18 column values for one full registration dict."""
    extras = row.get('datos_extra') or {}
    primer, segundo = split_apellidos(row.get('profile_apellido') or '', extract_field(row, 'segundo_apellido'))
    resp_primer, resp_segundo = split_apellidos(extras.get('responsable_apellido') or '',
                                                extras.get('responsable_segundo_apellido') or '')
    return {
        'nombre': row.get('profile_nombre') or '',
        'primer_apellido': primer,
        'segundo_apellido': segundo,
        'rut': row.get('rut') or '',
        'email': row.get('profile_email') or '',
        'cargo': row.get('cargo') or '',
        'tipo_credencial': extract_field(row, 'tipo_credencial'),
        'n_credencial': extract_field(row, 'n_credencial'),
        'empresa': row.get('organizacion') or extract_field(row, 'empresa'),
        'area': extract_field(row, 'area') or row.get('tipo_medio') or '',
        'zona': extract_field(row, 'zona'),
        'estado': STATUS_LABELS.get(row.get('status'), row.get('status') or ''),
        'resp_nombre': extras.get('responsable_nombre') or '',
        'resp_primer_ap': resp_primer,
        'resp_segundo_ap': resp_segundo,
        'resp_rut': extras.get('responsable_rut') or '',
        'resp_email': extras.get('responsable_email') or '',
        'resp_telefono': extras.get('responsable_telefono') or '',
    }


def build_puntoticket_row(row: Dict[str, Any]) -> Dict[str, str]:
    if row.get('tenant_slug') == 'cruzados':
        area = 'CRUZADOS'
    else:
        area = row.get('tipo_medio') or extract_field(row, 'area')
    return {
        'nombre': row.get('profile_nombre') or '',
        'apellido': row.get('profile_apellido') or '',
        'rut': row.get('rut') or '',
        'empresa': row.get('organizacion') or extract_field(row, 'empresa'),
        'area': area or '',
        'zona': extract_field(row, 'zona'),
        'patente': extract_field(row, 'patente'),
    }


def _write_csv(headers: List[str], rows: Iterable[List[str]]) -> str:
    buffer = io.StringIO()
    buffer.write(UTF8_BOM)
    writer = csv.writer(buffer, delimiter=CSV_DELIMITER, lineterminator='\r\n')
    writer.writerow(headers)
    writer.writerows(rows)
    return buffer.getvalue()


def export_filename(rows: List[Dict[str, Any]], export_format: str, timestamp: int) -> str:
    event_name = re.sub(r'[^a-zA-Z0-9]', '_', (rows[0].get('event_nombre') if rows else '') or '') \
        or ('export' if export_format == FORMAT_PUNTOTICKET else 'acreditaciones')
    prefix = 'puntoticket-' if export_format == FORMAT_PUNTOTICKET else ''
    return f'{prefix}{event_name}-{timestamp}.csv'


class ExportService:

    @staticmethod
    def to_csv(rows: List[Dict[str, Any]], export_format: str = FORMAT_FULL,
               columns: Optional[List[str]] = None) -> str:
        """
        Render full registration dicts as CSV text.

        Args:
            rows: Output of RegistrationService.list_registrations
            export_format: 'full' or 'puntoticket'
            columns: Column keys for the full layout (see filter_columns)
        """
        if export_format == FORMAT_PUNTOTICKET:
            keys = [key for key, _ in PUNTOTICKET_COLUMNS]
            return _write_csv([header for _, header in PUNTOTICKET_COLUMNS],
                              ([values[key] for key in keys] for values in map(build_puntoticket_row, rows)))

        keys = columns or list(EXPORT_COLUMN_KEYS)
        return _write_csv([EXPORT_HEADERS[key] for key in keys],
                          ([values[key] for key in keys] for values in map(build_export_row, rows)))
