"""
Unit Tests for CSV import and export helpers

Tests for:
- Header normalization and row parsing of mass-accreditation spreadsheets
- The downloadable import template
- Full and PuntoTicket export layouts
"""

from accredia.services.bulk_service import (
    build_template_csv, decode_upload, map_header, normalize_header, parse_csv_text,
)
from accredia.services.export_service import (
    EXPORT_COLUMN_KEYS, ExportService, build_export_row, build_puntoticket_row, export_filename,
    filter_columns, split_apellidos,
)


class TestBulkParsing:
    """Tests for spreadsheet parsing"""

    def test_normalize_header(self):
        assert normalize_header('  Organización ') == 'organizacion'
        assert normalize_header('RUT (xxxxxxxx-x)') == 'rut_(xxxxxxxx-x)'

    def test_map_header_aliases(self):
        assert map_header('RUT (xxxxxxxx-x)') == 'rut'
        assert map_header('Correo') == 'email'
        assert map_header('Área claro arena / Cruzados') == 'area'
        assert map_header('Talla') == 'talla'

    def test_parse_semicolon_csv(self):
        text = 'Nombre;Apellido;RUT;Empresa\r\n"Ana";Rojas;12.345.678-5;Radio Ejemplo\r\n\r\n'

        rows = parse_csv_text(text)

        assert rows == [{
            'rut': '12.345.678-5', 'nombre': 'Ana', 'apellido': 'Rojas',
            'empresa': 'Radio Ejemplo', 'organizacion': 'Radio Ejemplo',
        }]

    def test_parse_drops_empty_rows(self):
        text = 'nombre,apellido,rut\nAna,Rojas,11111111-1\n,,\n'

        assert len(parse_csv_text(text)) == 1

    def test_parse_needs_header_and_data(self):
        assert parse_csv_text('nombre,apellido,rut') == []
        assert parse_csv_text('') == []

    def test_decode_upload(self):
        assert decode_upload('\ufeffnombre'.encode('utf-8')) == 'nombre'
        assert decode_upload('Peñalolén'.encode('latin-1')) == 'Peñalolén'

    def test_template_appends_event_fields(self):
        template = build_template_csv([
            {'key': 'talla', 'label': 'Talla polera'},
            {'key': 'email', 'label': 'Correo'},
        ])

        header = template.lstrip('\ufeff').split('\r\n')[0].split(',')
        assert header[0] == 'Nombre'
        assert header[-1] == 'Talla polera'
        assert 'Correo' not in header


class TestExport:
    """Tests for export layouts"""

    ROW = {
        'profile_nombre': 'Ana',
        'profile_apellido': 'Rojas Pérez',
        'profile_email': 'ana@radio.cl',
        'rut': '11.111.111-1',
        'cargo': 'Periodista',
        'organizacion': 'Radio Ejemplo',
        'tipo_medio': 'Radio',
        'status': 'revision',
        'event_nombre': 'Cruzados vs Colo-Colo',
        'tenant_slug': 'uc',
        'datos_extra': {'zona': 'Cancha', 'patente': 'AB1234', 'responsable_nombre': 'Luis',
                        'responsable_apellido': 'Soto Díaz'},
        'profile_datos_base': {'n_credencial': '77'},
    }

    def test_filter_columns(self):
        assert filter_columns('rut,nombre,foo') == ['rut', 'nombre']
        assert filter_columns('foo') == EXPORT_COLUMN_KEYS
        assert filter_columns(None) == EXPORT_COLUMN_KEYS

    def test_split_apellidos(self):
        assert split_apellidos('González Pérez') == ('González', 'Pérez')
        assert split_apellidos('Soto') == ('Soto', '')
        assert split_apellidos('Soto', 'Díaz') == ('Soto', 'Díaz')

    def test_full_row(self):
        row = build_export_row(self.ROW)

        assert row['primer_apellido'] == 'Rojas'
        assert row['segundo_apellido'] == 'Pérez'
        assert row['estado'] == 'En revisión'
        assert row['zona'] == 'Cancha'
        assert row['n_credencial'] == '77'
        assert row['area'] == 'Radio'
        assert (row['resp_primer_ap'], row['resp_segundo_ap']) == ('Soto', 'Díaz')

    def test_puntoticket_row(self):
        row = build_puntoticket_row(self.ROW)

        assert row['area'] == 'Radio'
        assert row['patente'] == 'AB1234'
        assert build_puntoticket_row({**self.ROW, 'tenant_slug': 'cruzados'})['area'] == 'CRUZADOS'

    def test_csv_has_bom_and_semicolons(self):
        content = ExportService.to_csv([self.ROW], 'full', columns=['rut', 'nombre'])

        assert content.startswith('\ufeff')
        lines = content.lstrip('\ufeff').split('\r\n')
        assert lines[0] == 'RUT;Nombre'
        assert lines[1] == '11.111.111-1;Ana'

    def test_puntoticket_csv_header(self):
        content = ExportService.to_csv([self.ROW], 'puntoticket')

        assert content.lstrip('\ufeff').startswith('Nombre;Apellido;RUT;Empresa;Area claro arena/Cruzados;Zona;Patente')

    def test_export_filename(self):
        assert export_filename([self.ROW], 'full', 1700000000000) == 'Cruzados_vs_Colo_Colo-1700000000000.csv'
        assert export_filename([], 'puntoticket', 1) == 'puntoticket-export-1.csv'
        assert export_filename([], 'full', 1) == 'acreditaciones-1.csv'
