"""
EmailService - Transactional email through the Resend HTTP API

Sends approval / rejection notices, welcome credentials for new tenant
admins, magic links and event invitations.

Templates:
- A tenant may override the approval and rejection emails (email_templates);
  an override is used only when both subject and body_html are set
- Zone-specific blocks (email_zone_content) are injected through the
  {instrucciones_acceso}, {info_especifica} and {notas_importantes} variables
- Without an override the built-in HTML, branded with the tenant colors, is used

Delivery failures never raise: send methods return (success, error) so a
failing address never blocks a batch. Every attempt is written to email_logs.
"""

import logging
import re
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import requests
from flask import current_app

from accredia.extensions import db
from accredia.models import EmailTemplate, EmailZoneContent, EmailLog, Tenant, parse_uuid
from accredia.models.email import TIPO_APROBACION, TIPO_RECHAZO, EMAIL_TIPOS
from accredia.services.errors import NotFoundError, ValidationFailed
from accredia.utils.dates import format_fecha_es
from accredia.utils.html import sanitize_html, escape_html, safe_color, safe_url

logger = logging.getLogger(__name__)

TEMPLATE_VARS = ('nombre', 'apellido', 'evento', 'fecha', 'lugar', 'organizacion', 'cargo', 'motivo',
                 'tenant', 'zona', 'area', 'qr_section', 'instrucciones_acceso', 'info_especifica',
                 'notas_importantes', 'info_general')
VAR_PATTERN = re.compile(r'\{(' + '|'.join(TEMPLATE_VARS) + r')\}')

QR_IMAGE_URL = 'https://api.qrserver.com/v1/create-qr-code/?size=200x200&data={data}'

SAMPLE_REGISTRATION = {
    'profile_nombre': 'Juan',
    'profile_apellido': 'Pérez',
    'event_nombre': 'Evento de ejemplo',
    'event_fecha': '2025-03-15',
    'event_venue': 'Estadio',
    'organizacion': 'Medio de ejemplo',
    'cargo': 'Periodista',
    'datos_extra': {'zona': 'Tribuna de prensa', 'area': 'Prensa'},
    'event_qr_enabled': False,
    'qr_token': None,
    'motivo_rechazo': 'Cupo completo',
}


def replace_vars(template: str, variables: Dict[str, str]) -> str:
    """Replace every {var} of the known template variables; unknown braces are left alone."""
    if not template:
        return ''
    return VAR_PATTERN.sub(lambda m: variables.get(m.group(1), ''), template)


def _box(color: str, border: str, body: str) -> str:
    return (f'<div style="background: {color}; border-left: 4px solid {border}; padding: 15px; '
            f'margin: 15px 0; border-radius: 4px;">{body}</div>')


def _layout(tenant: Tenant, title: str, body: str) -> str:
    logo = f'<img src="{safe_url(tenant.logo_url)}" alt="{escape_html(tenant.nombre)}" style="height: 60px;" />' \
        if tenant.logo_url else ''
    return f"""
    <div style="max-width: 600px; margin: 0 auto; font-family: Arial, sans-serif;">
      <div style="background: {safe_color(tenant.color_primario, '#1a1a2e')}; padding: 30px; text-align: center;">
        {logo}
        <h1 style="color: {safe_color(tenant.color_secundario, '#ffffff')}; margin: 10px 0 0;">{title}</h1>
      </div>
      <div style="padding: 30px; background: #ffffff;">
        {body}
        <p style="color: #666; font-size: 13px;">Este es un correo automático del sistema de acreditaciones.</p>
      </div>
      <div style="background: {safe_color(tenant.color_dark, '#1a1a2e')}; padding: 15px; text-align: center;">
        <p style="color: #999; font-size: 12px; margin: 0;">{escape_html(tenant.nombre)} · Sistema de Acreditaciones</p>
      </div>
    </div>
    """


class EmailService:

    # ─── Delivery ────────────────────────────────────────────────────────

    @staticmethod
    def _log(to_email: str, tipo: str, subject: str, success: bool, provider_id=None, error=None,
             registration_id=None, tenant_id=None) -> None:
        try:
            db.session.add(EmailLog(
                registration_id=parse_uuid(registration_id),
                tenant_id=parse_uuid(tenant_id),
                tipo=tipo,
                to_email=to_email or '',
                subject=(subject or '')[:300],
                status=EmailLog.STATUS_SENT if success else EmailLog.STATUS_FAILED,
                provider_id=provider_id,
                error=error,
                sent_at=datetime.now(timezone.utc) if success else None,
            ))
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error(f"Could not write email log for {to_email}: {e}", exc_info=True)

    @staticmethod
    def send_email(to_email: str, subject: str, html: str, tipo: str,
                   registration_id=None, tenant_id=None) -> Tuple[bool, Optional[str]]:
        """
        Send one email through Resend.

        Returns:
            Tuple of (success, error message)
        """
        api_key = current_app.config.get('RESEND_API_KEY')
        if not to_email:
            return False, 'Email del destinatario vacío'
        if not api_key:
            error = 'RESEND_API_KEY no configurada'
            logger.error(f"Email not sent to {to_email}: {error}")
            EmailService._log(to_email, tipo, subject, False, error=error,
                              registration_id=registration_id, tenant_id=tenant_id)
            return False, error

        try:
            response = requests.post(
                current_app.config['RESEND_API_URL'],
                headers={'Authorization': f'Bearer {api_key}', 'Content-Type': 'application/json'},
                json={
                    'from': current_app.config['RESEND_FROM_EMAIL'],
                    'to': [to_email],
                    'subject': subject,
                    'html': html,
                },
                timeout=current_app.config.get('RESEND_TIMEOUT', 15),
            )
        except requests.RequestException as e:
            logger.error(f"Resend request failed for {to_email}: {e}")
            EmailService._log(to_email, tipo, subject, False, error=str(e),
                              registration_id=registration_id, tenant_id=tenant_id)
            return False, str(e)

        if response.status_code >= 400:
            try:
                error = response.json().get('message') or response.text
            except ValueError:
                error = response.text
            logger.error(f"Resend rejected email to {to_email}: {response.status_code} {error}")
            EmailService._log(to_email, tipo, subject, False, error=error,
                              registration_id=registration_id, tenant_id=tenant_id)
            return False, error

        provider_id = None
        try:
            provider_id = response.json().get('id')
        except ValueError:
            pass
        EmailService._log(to_email, tipo, subject, True, provider_id=provider_id,
                          registration_id=registration_id, tenant_id=tenant_id)
        logger.info(f"Email sent: {tipo} -> {to_email}")
        return True, None

    # ─── Templates ───────────────────────────────────────────────────────

    @staticmethod
    def _check_tipo(tipo: str) -> None:
        if tipo not in EMAIL_TIPOS:
            raise ValidationFailed('tipo debe ser aprobacion o rechazo')

    @staticmethod
    def get_templates(tenant_id) -> List[EmailTemplate]:
        return EmailTemplate.query.filter_by(tenant_id=parse_uuid(tenant_id)).all()

    @staticmethod
    def get_template(tenant_id, tipo: str) -> Optional[EmailTemplate]:
        return EmailTemplate.query.filter_by(tenant_id=parse_uuid(tenant_id), tipo=tipo).first()

    @staticmethod
    def upsert_template(tenant_id, tipo: str, subject: Optional[str], body_html: Optional[str],
                        info_general: Optional[str] = None) -> EmailTemplate:
        """Store a tenant override; HTML fields are sanitized first."""
        EmailService._check_tipo(tipo)
        tid = parse_uuid(tenant_id)
        template = EmailService.get_template(tid, tipo)
        if not template:
            template = EmailTemplate(tenant_id=tid, tipo=tipo)
            db.session.add(template)
        template.subject = subject
        template.body_html = sanitize_html(body_html or '') or None
        template.info_general = sanitize_html(info_general or '') or None
        db.session.commit()
        logger.info(f"Email template saved: tenant={tid} tipo={tipo}")
        return template

    @staticmethod
    def get_zone_contents(tenant_id, tipo: Optional[str] = None) -> List[EmailZoneContent]:
        query = EmailZoneContent.query.filter_by(tenant_id=parse_uuid(tenant_id))
        if tipo:
            query = query.filter_by(tipo=tipo)
        return query.order_by(EmailZoneContent.zona).all()

    @staticmethod
    def get_zone_content(tenant_id, tipo: str, zona: Optional[str]) -> Optional[EmailZoneContent]:
        if not zona:
            return None
        return EmailZoneContent.query.filter_by(tenant_id=parse_uuid(tenant_id), tipo=tipo, zona=zona).first()

    @staticmethod
    def upsert_zone_content(tenant_id, data: Dict[str, Any]) -> EmailZoneContent:
        tipo = data.get('tipo') or TIPO_APROBACION
        EmailService._check_tipo(tipo)
        zona = (data.get('zona') or '').strip()
        if not zona:
            raise ValidationFailed('zona es requerida')

        tid = parse_uuid(tenant_id)
        content = EmailService.get_zone_content(tid, tipo, zona)
        if not content:
            content = EmailZoneContent(tenant_id=tid, tipo=tipo, zona=zona)
            db.session.add(content)
        content.titulo = data.get('titulo')
        for field in ('instrucciones_acceso', 'info_especifica', 'notas_importantes'):
            setattr(content, field, sanitize_html(data.get(field) or '') or None)
        db.session.commit()
        return content

    @staticmethod
    def delete_zone_content(tenant_id, content_id) -> None:
        content = EmailZoneContent.query.filter_by(id=parse_uuid(content_id), tenant_id=parse_uuid(tenant_id)).first()
        if not content:
            raise NotFoundError('Contenido de zona no encontrado')
        db.session.delete(content)
        db.session.commit()

    # ─── Rendering ───────────────────────────────────────────────────────

    @staticmethod
    def build_vars(registration: Dict[str, Any], tenant: Tenant, zone_content: Optional[EmailZoneContent],
                   info_general: Optional[str], motivo: Optional[str] = None) -> Dict[str, str]:
        """
        Template variables for a full registration dict.

        User-supplied text is escaped; qr_section and the admin-authored zone
        blocks are HTML and inserted as they are.
        """
        extra = registration.get('datos_extra') or {}
        qr_section = ''
        if registration.get('event_qr_enabled') and registration.get('qr_token'):
            qr_url = QR_IMAGE_URL.format(data=quote(registration['qr_token'], safe=''))
            qr_section = (
                '<div style="text-align: center; margin: 20px 0; padding: 20px; background: #f8f9fa; '
                'border-radius: 8px;">'
                '<p style="font-size: 14px; color: #666;">Tu código QR de acceso:</p>'
                f'<img src="{qr_url}" alt="QR de acceso" style="width: 200px; height: 200px;" />'
                '<p style="font-size: 12px; color: #999; margin-top: 10px;">'
                'Presenta este QR en la entrada del evento</p></div>'
            )

        fecha = format_fecha_es(registration.get('event_fecha')) if registration.get('event_fecha') else ''
        return {
            'nombre': escape_html(registration.get('profile_nombre') or ''),
            'apellido': escape_html(registration.get('profile_apellido') or ''),
            'evento': escape_html(registration.get('event_nombre') or ''),
            'fecha': escape_html(fecha),
            'lugar': escape_html(registration.get('event_venue') or ''),
            'organizacion': escape_html(registration.get('organizacion') or '-'),
            'cargo': escape_html(registration.get('cargo') or '-'),
            'motivo': escape_html(motivo or registration.get('motivo_rechazo') or ''),
            'tenant': escape_html(tenant.nombre),
            'zona': escape_html(extra.get('zona') or ''),
            'area': escape_html(extra.get('area') or extra.get('tipo_credencial') or ''),
            'qr_section': qr_section,
            'instrucciones_acceso': (zone_content.instrucciones_acceso or '') if zone_content else '',
            'info_especifica': (zone_content.info_especifica or '') if zone_content else '',
            'notas_importantes': (zone_content.notas_importantes or '') if zone_content else '',
            'info_general': info_general or '',
        }

    @staticmethod
    def _fallback_approval_html(tenant: Tenant, v: Dict[str, str]) -> str:
        details = f'<p style="margin: 0;"><strong>Evento:</strong> {v["evento"]}</p>'
        if v['fecha']:
            details += f'<p style="margin: 5px 0 0;"><strong>Fecha:</strong> {v["fecha"]}</p>'
        if v['lugar']:
            details += f'<p style="margin: 5px 0 0;"><strong>Lugar:</strong> {v["lugar"]}</p>'
        details += (f'<p style="margin: 5px 0 0;"><strong>Organización:</strong> {v["organizacion"]}</p>'
                    f'<p style="margin: 5px 0 0;"><strong>Cargo:</strong> {v["cargo"]}</p>')

        sections = [
            f'<p>Estimado/a <strong>{v["nombre"]} {v["apellido"]}</strong>,</p>',
            f'<p>Tu acreditación para el evento <strong>{v["evento"]}</strong> ha sido '
            '<span style="color: #22c55e; font-weight: bold;">APROBADA</span>.</p>',
            _box('#f0fdf4', '#22c55e', details),
        ]
        if v['area']:
            sections.append(_box('#eff6ff', '#3b82f6', f'<p style="margin: 0;"><strong>Área de Acreditación:</strong> '
                                                         f'{v["area"]}</p>'))
        if v['zona']:
            sections.append(_box('#fef3c7', '#e8b543', f'<p style="margin: 0;"><strong>Zona Asignada:</strong> '
                                                         f'{v["zona"]}</p>'))
        if v['instrucciones_acceso']:
            sections.append(_box('#eff6ff', '#1e5799', '<p style="margin: 0 0 8px; font-weight: 600;">'
                                                       f'Instrucciones de Acceso:</p>{v["instrucciones_acceso"]}'))
        if v['info_especifica']:
            sections.append(_box('#f9fafb', '#6b7280', v['info_especifica']))
        if v['notas_importantes']:
            sections.append(_box('#fef2f2', '#dc2626', v['notas_importantes']))
        if v['info_general']:
            sections.append(_box('#f9fafb', '#6b7280', '<p style="margin: 0 0 8px; font-weight: 600;">'
                                                       f'Información General:</p>{v["info_general"]}'))
        sections.append(v['qr_section'])
        return _layout(tenant, 'Acreditación Aprobada', '\n'.join(sections))

    @staticmethod
    def _fallback_rejection_html(tenant: Tenant, v: Dict[str, str]) -> str:
        sections = [
            f'<p>Estimado/a <strong>{v["nombre"]} {v["apellido"]}</strong>,</p>',
            '<p>Lamentamos informarle que su solicitud de acreditación para el evento '
            f'<strong>{v["evento"]}</strong> no ha sido aprobada.</p>',
        ]
        if v['motivo']:
            sections.append(_box('#fef2f2', '#ef4444', f'<p style="margin: 0;"><strong>Motivo:</strong> '
                                                         f'{v["motivo"]}</p>'))
        sections.append('<p>Si tiene consultas, por favor contacte al organizador del evento.</p>')
        return _layout(tenant, 'Acreditación No Aprobada', '\n'.join(sections))

    @staticmethod
    def render(registration: Dict[str, Any], tenant: Tenant, tipo: str,
               motivo: Optional[str] = None) -> Tuple[str, str]:
        """
        Subject and HTML for an approval or rejection email.

        Returns:
            Tuple of (subject, html)
        """
        extra = registration.get('datos_extra') or {}
        custom = EmailService.get_template(tenant.id, tipo)
        if custom and not (custom.subject and custom.body_html):
            custom = None
        zone_content = EmailService.get_zone_content(tenant.id, tipo, extra.get('zona'))
        variables = EmailService.build_vars(registration, tenant, zone_content,
                                            custom.info_general if custom else None, motivo)

        evento = registration.get('event_nombre') or ''
        if tipo == TIPO_APROBACION:
            subject = replace_vars(custom.subject, variables) if custom else f'✅ Acreditación Aprobada — {evento}'
            html = replace_vars(custom.body_html, variables) if custom \
                else EmailService._fallback_approval_html(tenant, variables)
        else:
            subject = replace_vars(custom.subject, variables) if custom else f'Acreditación — {evento}'
            html = replace_vars(custom.body_html, variables) if custom \
                else EmailService._fallback_rejection_html(tenant, variables)
        return subject, html

    @staticmethod
    def preview(tenant_id, tipo: str, subject: Optional[str] = None,
                body_html: Optional[str] = None) -> Dict[str, str]:
        """Render a template draft with sample data (nothing is stored or sent)."""
        EmailService._check_tipo(tipo)
        tid = parse_uuid(tenant_id)
        tenant = db.session.get(Tenant, tid) if tid else None
        if not tenant:
            raise NotFoundError('Tenant no encontrado')

        sample = dict(SAMPLE_REGISTRATION)
        variables = EmailService.build_vars(sample, tenant, None, None)
        if subject and body_html:
            return {'subject': replace_vars(subject, variables),
                    'html': replace_vars(sanitize_html(body_html), variables)}
        rendered_subject, html = EmailService.render(sample, tenant, tipo)
        return {'subject': rendered_subject, 'html': html}

    # ─── Registration notices ────────────────────────────────────────────

    @staticmethod
    def _load(registration_id) -> Tuple[Optional[Dict[str, Any]], Optional[Tenant]]:
        from accredia.services.registration_service import RegistrationService

        registration = RegistrationService.get_full(registration_id)
        if not registration:
            return None, None
        return registration, db.session.get(Tenant, parse_uuid(registration['tenant_id']))

    @staticmethod
    def _send_notice(registration: Dict[str, Any], tenant: Tenant, tipo: str,
                     motivo: Optional[str] = None) -> Tuple[bool, Optional[str]]:
        if not registration.get('profile_email'):
            return False, 'El acreditado no tiene email'
        subject, html = EmailService.render(registration, tenant, tipo, motivo)
        return EmailService.send_email(registration['profile_email'], subject, html, tipo,
                                       registration_id=registration['id'], tenant_id=tenant.id)

    @staticmethod
    def send_approval_email(registration_id) -> Tuple[bool, Optional[str]]:
        registration, tenant = EmailService._load(registration_id)
        if not registration:
            return False, 'Registro no encontrado'
        return EmailService._send_notice(registration, tenant, TIPO_APROBACION)

    @staticmethod
    def send_rejection_email(registration_id, motivo: Optional[str] = None) -> Tuple[bool, Optional[str]]:
        registration, tenant = EmailService._load(registration_id)
        if not registration:
            return False, 'Registro no encontrado'
        return EmailService._send_notice(registration, tenant, TIPO_RECHAZO, motivo)

    @staticmethod
    def send_bulk_approval_emails(registration_ids: List) -> Dict[str, int]:
        """
        Send approval emails one by one, pausing BULK_EMAIL_DELAY_SECONDS between sends.

        Returns:
            {'sent': n, 'errors': n}
        """
        delay = current_app.config.get('BULK_EMAIL_DELAY_SECONDS', 0.5)
        sent = errors = 0
        for index, registration_id in enumerate(registration_ids):
            registration, tenant = EmailService._load(registration_id)
            if not registration or not registration.get('profile_email'):
                errors += 1
                continue

            success, _ = EmailService._send_notice(registration, tenant, TIPO_APROBACION)
            if success:
                sent += 1
            else:
                errors += 1
            if delay and index < len(registration_ids) - 1:
                time.sleep(delay)

        logger.info(f"Bulk approval emails: sent={sent} errors={errors}")
        return {'sent': sent, 'errors': errors}

    # ─── Account and invitation emails ───────────────────────────────────

    @staticmethod
    def send_welcome_email(email: str, nombre: str, tenant_nombre: str, tenant_slug: str,
                           temp_password: Optional[str] = None) -> Tuple[bool, Optional[str]]:
        app_url = current_app.config['APP_URL']
        login_url = f'{app_url}/{tenant_slug}/admin'
        credentials = (
            f'<p><strong>Email:</strong> {escape_html(email)}<br/>'
            f'<strong>Contraseña temporal:</strong> {escape_html(temp_password)}</p>'
            '<p>Deberás cambiar tu contraseña al iniciar sesión por primera vez.</p>'
        ) if temp_password else '<p>Ingresa con tu cuenta existente.</p>'

        html = f"""
        <div style="max-width: 600px; margin: 0 auto; font-family: Arial, sans-serif;">
          <h2>Hola {escape_html(nombre) or ''},</h2>
          <p>Fuiste agregado/a como administrador/a de <strong>{escape_html(tenant_nombre)}</strong>.</p>
          {credentials}
          <p><a href="{safe_url(login_url)}">Ingresar al panel</a></p>
        </div>
        """
        return EmailService.send_email(email, f'Bienvenido/a a {tenant_nombre} — Credenciales de acceso',
                                       html, 'bienvenida')

    @staticmethod
    def send_magic_link_email(email: str, link: str) -> Tuple[bool, Optional[str]]:
        html = f"""
        <div style="max-width: 600px; margin: 0 auto; font-family: Arial, sans-serif;">
          <h2>Ingresa a Accredia</h2>
          <p>Usa este enlace para iniciar sesión. Expira en pocos minutos y solo puede usarse una vez.</p>
          <p><a href="{safe_url(link)}">Iniciar sesión</a></p>
          <p style="color: #666; font-size: 13px;">Si no solicitaste este correo, ignóralo.</p>
        </div>
        """
        return EmailService.send_email(email, 'Tu enlace de acceso', html, 'magic_link')

    @staticmethod
    def send_invitation_email(invitation, event, tenant: Tenant) -> Tuple[bool, Optional[str]]:
        link = f"{current_app.config['APP_URL']}/{tenant.slug}/acreditacion?invite={invitation.token}"
        fecha = format_fecha_es(event.fecha) if event.fecha else ''
        body = (
            f'<p>Hola {escape_html(invitation.nombre or "")},</p>'
            f'<p>Has sido invitado/a a acreditarte para <strong>{escape_html(event.nombre)}</strong>'
            f'{" el " + escape_html(fecha) if fecha else ""}.</p>'
            f'<p><a href="{safe_url(link)}">Completar acreditación</a></p>'
        )
        return EmailService.send_email(invitation.email, f'Invitación — {event.nombre}',
                                       _layout(tenant, 'Invitación a acreditarse', body),
                                       'invitacion', tenant_id=tenant.id)
