"""
Uploads Blueprint - images to object storage.

- POST /api/upload (multipart: file, folder, tenant_slug) - Returns {url, key}
"""

import logging
import re
import uuid
from flask import Blueprint, request, current_app, g

from accredia.services.audit_service import AuditService
from accredia.utils.decorators import jwt_required_custom
from accredia.utils.responses import ok, bad_request, internal_error, service_unavailable
from accredia.utils.s3_client import s3_client

logger = logging.getLogger(__name__)

uploads_bp = Blueprint('uploads', __name__, url_prefix='/api/upload')

SLUG_PATTERN = re.compile(r'[a-z0-9-]+')


def _extension(filename: str) -> str:
    return filename.rsplit('.', 1)[-1].lower() if '.' in (filename or '') else ''


@uploads_bp.route('', methods=['POST'])
@jwt_required_custom
def upload_file():
    """
    Upload a branding image or a registrant photo.

    **Form Data**:
        - file: The image
        - folder: logos | shields | backgrounds | fotos | opponents
        - tenant_slug: Optional, objects are stored under {tenant_slug or 'global'}/{folder}/

    **Response**: {"url": "https://.../cruzados/logos/<uuid>.png", "key": "cruzados/logos/<uuid>.png"}
    """
    try:
        if 'file' not in request.files:
            return bad_request('Archivo requerido')

        file_obj = request.files['file']
        if file_obj.filename == '':
            return bad_request('Archivo requerido')

        folder = request.form.get('folder') or 'logos'
        if folder not in current_app.config['UPLOAD_FOLDERS']:
            return bad_request(f"Carpeta inválida. Usa: {', '.join(current_app.config['UPLOAD_FOLDERS'])}")

        ext = _extension(file_obj.filename)
        allowed = current_app.config['ALLOWED_UPLOAD_EXTENSIONS']
        if ext not in allowed:
            return bad_request(f"Tipo de archivo no permitido. Usa: {', '.join(sorted(allowed))}")

        file_obj.seek(0, 2)
        file_size = file_obj.tell()
        file_obj.seek(0)

        max_mb = current_app.config['MAX_UPLOAD_SIZE_MB']
        if file_size == 0:
            return bad_request('El archivo está vacío')
        if file_size > max_mb * 1024 * 1024:
            return bad_request(f'El archivo excede el máximo de {max_mb}MB')

        slug = (request.form.get('tenant_slug') or '').strip().lower() or 'global'
        if not SLUG_PATTERN.fullmatch(slug):
            return bad_request('tenant_slug inválido')
        key = f'{slug}/{folder}/{uuid.uuid4()}.{ext}'

        url, error = s3_client.upload_file(file_obj, key, file_obj.mimetype)
        if error:
            logger.error(f"Upload failed for key {key}: {error}")
            return service_unavailable('No se pudo subir el archivo')

        AuditService.log_action(g.user_id, 'file.uploaded', 'upload', key, {'size': file_size})
        return ok({'url': url, 'key': key}, 'Archivo subido')

    except Exception as e:
        logger.error(f"Error uploading file: {str(e)}", exc_info=True)
        return internal_error()
