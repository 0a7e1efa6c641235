"""
ProfileService - registrant identity and form autofill.

A person is identified by RUT. When the RUT already participated in an
event, their data is preloaded on the next form ("differential form").
Answers to tenant-specific form fields are stored per tenant in
``datos_base['_tenant'][<tenant_id>]`` and merged back into new forms.
"""

import copy
import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from accredia.extensions import db
from accredia.models import Profile, parse_uuid
from accredia.services.errors import NotFoundError, ValidationFailed
from accredia.utils.validation import validate_rut, sanitize

logger = logging.getLogger(__name__)

TENANT_DATA_KEY = '_tenant'
FORM_KEYS_KEY = '_form_keys'

# Form keys that map onto Profile columns
PROFILE_UPDATABLE_FIELDS = ('nombre', 'apellido', 'email', 'telefono', 'nacionalidad',
                            'cargo', 'medio', 'tipo_medio', 'foto_url')


def _is_empty(value: Any) -> bool:
    return value is None or value == ''


def _clean_profile_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only answers worth remembering: drop responsable_* and internal _ keys."""
    return {
        key: value for key, value in (data or {}).items()
        if not key.startswith('responsable_') and not key.startswith('_')
    }


class ProfileService:

    @staticmethod
    def lookup_profile_by_rut(rut: str) -> Optional[Profile]:
        """Find a profile by RUT, accepting unformatted input."""
        if not rut:
            return None
        check = validate_rut(rut, check_digit=False)
        formatted = check.formatted if check.valid else rut
        return Profile.find_by_rut(formatted)

    @staticmethod
    def get_profile_by_user_id(user_id) -> Optional[Profile]:
        return Profile.find_by_user_id(parse_uuid(user_id))

    @staticmethod
    def get_profile(profile_id) -> Profile:
        pid = parse_uuid(profile_id)
        profile = db.session.get(Profile, pid) if pid else None
        if not profile:
            raise NotFoundError('Perfil no encontrado')
        return profile

    @staticmethod
    def get_or_create_profile(data: Dict[str, Any], user_id=None, commit: bool = True) -> Profile:
        """
        Get the profile of data['rut'] refreshing changed fields, or create it.

        Non-empty nombre, apellido, email and telefono overwrite stored values;
        cargo, tipo_medio and organizacion (stored as medio) are always taken
        from the latest submission when given. An unlinked profile gets linked
        to user_id.

        Args:
            data: Form data with rut, nombre, apellido and optional fields
            user_id: Authenticated account submitting for themselves
            commit: Commit immediately (False when called inside a larger transaction)
        """
        uid = parse_uuid(user_id)
        existing = ProfileService.lookup_profile_by_rut(data.get('rut'))

        if existing:
            changed = False
            for field in ('nombre', 'apellido', 'email', 'telefono', 'nacionalidad'):
                value = data.get(field)
                if value and value != getattr(existing, field):
                    setattr(existing, field, value)
                    changed = True
            for field, source in (('cargo', 'cargo'), ('tipo_medio', 'tipo_medio'), ('medio', 'organizacion')):
                value = data.get(source)
                if value:
                    setattr(existing, field, value)
                    changed = True
            if data.get('foto_url'):
                existing.foto_url = data['foto_url']
                changed = True
            if uid and not existing.user_id:
                existing.user_id = uid
                changed = True

            if changed:
                db.session.flush()
            if commit:
                db.session.commit()
            return existing

        profile = Profile(
            rut=data.get('rut'),
            document_type=data.get('document_type') or 'rut',
            document_number=data.get('document_number'),
            nombre=data.get('nombre'),
            apellido=data.get('apellido'),
            email=data.get('email') or None,
            telefono=data.get('telefono') or None,
            nacionalidad=data.get('nacionalidad') or None,
            cargo=data.get('cargo') or None,
            medio=data.get('organizacion') or data.get('medio') or None,
            tipo_medio=data.get('tipo_medio') or None,
            foto_url=data.get('foto_url') or None,
            datos_base={},
            user_id=uid,
        )
        db.session.add(profile)
        db.session.flush()
        if commit:
            db.session.commit()

        logger.info(f"Profile created: {profile.id} ({profile.rut})")
        return profile

    @staticmethod
    def link_profile_to_user(rut: str, user_id) -> Optional[Profile]:
        """
        Link an account to an existing profile created earlier (e.g. by a team manager).

        Only unlinked profiles are linked; returns None otherwise.
        """
        uid = parse_uuid(user_id)
        profile = ProfileService.lookup_profile_by_rut(rut)
        if not profile or profile.user_id is not None or uid is None:
            return None
        if Profile.find_by_user_id(uid):
            logger.warning(f"User {uid} already has a profile; not linking RUT {rut}")
            return None

        profile.user_id = uid
        db.session.commit()
        logger.info(f"Profile {profile.id} linked to user {uid}")
        return profile

    @staticmethod
    def update_profile(profile: Profile, data: Dict[str, Any]) -> Profile:
        """Update editable profile columns (RUT is set once)."""
        updates = {key: data[key] for key in PROFILE_UPDATABLE_FIELDS if key in data}
        for key in ('nombre', 'apellido', 'cargo', 'medio', 'tipo_medio', 'nacionalidad'):
            if key in updates and isinstance(updates[key], str):
                updates[key] = sanitize(updates[key]) or None
        if updates.get('nombre') is None and 'nombre' in updates:
            raise ValidationFailed('Nombre es requerido')
        if updates.get('apellido') is None and 'apellido' in updates:
            raise ValidationFailed('Apellido es requerido')

        if data.get('rut') and not profile.rut:
            check = validate_rut(data['rut'])
            if not check.valid:
                raise ValidationFailed(check.error)
            profile.rut = check.formatted

        profile.update_from_dict(updates, allowed_fields=list(PROFILE_UPDATABLE_FIELDS))
        db.session.commit()
        return profile

    @staticmethod
    def update_profile_datos_base(profile_id, datos_base: Dict[str, Any]) -> Profile:
        """Merge datos_base with new values."""
        profile = ProfileService.get_profile(profile_id)
        merged = copy.deepcopy(profile.datos_base or {})
        merged.update(datos_base or {})
        profile.datos_base = merged
        db.session.commit()
        return profile

    @staticmethod
    def get_tenant_profile_data(profile: Profile, tenant_id) -> Dict[str, Any]:
        tenant_map = (profile.datos_base or {}).get(TENANT_DATA_KEY) or {}
        return dict(tenant_map.get(str(tenant_id)) or {})

    @staticmethod
    def save_tenant_profile_data(
        profile_id,
        tenant_id,
        data: Dict[str, Any],
        form_keys: Optional[Iterable[str]] = None,
        commit: bool = True,
    ) -> Profile:
        """
        Merge form answers into datos_base['_tenant'][tenant_id].

        Keys starting with 'responsable_' or '_' are dropped. The keys of the
        form they came from are remembered so that form changes can be detected,
        and those keys are mirrored into the flat datos_base map.
        """
        profile = ProfileService.get_profile(profile_id)
        clean = _clean_profile_data(data)

        datos_base = copy.deepcopy(profile.datos_base or {})
        tenant_map = datos_base.setdefault(TENANT_DATA_KEY, {})
        tenant_data = tenant_map.setdefault(str(tenant_id), {})
        tenant_data.update(clean)
        if form_keys is not None:
            keys = set(form_keys)
            tenant_data[FORM_KEYS_KEY] = sorted(keys)
            # flat map stays in sync for forms that predate per-tenant storage
            for key in keys & set(clean):
                datos_base[key] = clean[key]

        profile.datos_base = datos_base
        if commit:
            db.session.commit()
        else:
            db.session.flush()
        return profile

    @staticmethod
    def build_merged_autofill_data(
        profile_or_datos_base: Union[Profile, Dict[str, Any], None],
        tenant_id,
        form_fields: List[Dict[str, Any]],
    ) -> Dict[str, str]:
        """
        Autofill values for a form.

        Cascade per field key: tenant-specific data, then flat datos_base, then
        the field's profile_field (prefix 'datos_base.' stripped) looked up in
        tenant data, flat datos_base, and finally the profile's fixed columns
        (only available when a Profile is given).

        Returns:
            {field_key: str(value)} for non-empty values only
        """
        if profile_or_datos_base is None:
            return {}

        is_profile = isinstance(profile_or_datos_base, Profile)
        datos_base = (profile_or_datos_base.datos_base or {}) if is_profile else profile_or_datos_base
        tenant_data = (datos_base.get(TENANT_DATA_KEY) or {}).get(str(tenant_id)) or {}
        fixed = {
            field: getattr(profile_or_datos_base, field) for field in Profile.FIXED_FIELDS
        } if is_profile else {}

        result: Dict[str, str] = {}
        for field in form_fields or []:
            key = field.get('key')
            if not key:
                continue

            value = tenant_data.get(key)
            if _is_empty(value):
                value = datos_base.get(key)

            profile_field = field.get('profile_field')
            if _is_empty(value) and profile_field:
                pf_key = profile_field[len('datos_base.'):] if profile_field.startswith('datos_base.') \
                    else profile_field
                value = tenant_data.get(pf_key)
                if _is_empty(value):
                    value = datos_base.get(pf_key)
                if _is_empty(value):
                    value = fixed.get(pf_key)

            if not _is_empty(value):
                result[key] = str(value)

        return result

    @staticmethod
    def compute_tenant_profile_status(profile: Profile, tenant_id, form_fields: List[Dict[str, Any]]) -> Dict:
        """
        Completion of the tenant-specific form for a profile.

        Returns:
            Dict with total_required, filled_required, missing_fields,
            completion_pct, has_data, form_changed, new_keys and removed_keys
        """
        autofill = ProfileService.build_merged_autofill_data(profile, tenant_id, form_fields)
        required = [f for f in form_fields or [] if f.get('required') and f.get('key')]
        missing = [{'key': f['key'], 'label': f.get('label', f['key'])}
                   for f in required if f['key'] not in autofill]

        tenant_data = ProfileService.get_tenant_profile_data(profile, tenant_id)
        saved_keys = set(tenant_data.get(FORM_KEYS_KEY) or [])
        current_keys = {f['key'] for f in form_fields or [] if f.get('key')}
        new_keys = sorted(current_keys - saved_keys) if saved_keys else []
        removed_keys = sorted(saved_keys - current_keys) if saved_keys else []

        total = len(required)
        filled = total - len(missing)
        return {
            'total_required': total,
            'filled_required': filled,
            'missing_fields': missing,
            'completion_pct': round(filled / total * 100) if total else 100,
            'has_data': bool(tenant_data),
            'form_changed': bool(new_keys or removed_keys),
            'new_keys': new_keys,
            'removed_keys': removed_keys,
        }
