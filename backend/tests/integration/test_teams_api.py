"""
Integration Tests for the Teams API

A press manager's roster through /api/teams:
- Adding, renaming and removing members
- Duplicate members and managers without a profile
- Roster for an event with registration state
"""

import json

import pytest

from accredia.models import Profile, TeamMember


def _post(client, url, payload, headers=None):
    return client.post(url, data=json.dumps(payload), content_type='application/json', headers=headers)


@pytest.fixture
def manager(db, user):
    """Complete profile linked to `user`."""
    profile = Profile(rut='11.111.111-1', nombre='Marta', apellido='Soto', medio='Canal 13',
                      email=user.email, user_id=user.id, datos_base={})
    db.session.add(profile)
    db.session.commit()
    return profile


class TestTeamsApi:
    """Tests for /api/teams"""

    def test_add_member(self, client, user, manager, make_headers):
        response = _post(client, '/api/teams', {'rut': '22222222-2', 'nombre': 'Pedro', 'apellido': 'Díaz',
                                                'alias': 'Pedro (cámara)'},
                         headers=make_headers(user))

        assert response.status_code == 201
        data = response.get_json()['data']
        assert data['alias'] == 'Pedro (cámara)'
        assert data['profile']['rut'] == '22.222.222-2'

    def test_missing_required_fields(self, client, user, manager, make_headers):
        response = _post(client, '/api/teams', {'rut': '22222222-2'}, headers=make_headers(user))

        assert response.status_code == 400
        assert 'nombre' in response.get_json()['details']

    def test_duplicate_member(self, client, user, manager, make_headers):
        payload = {'rut': '22222222-2', 'nombre': 'Pedro', 'apellido': 'Díaz'}
        _post(client, '/api/teams', payload, headers=make_headers(user))

        response = _post(client, '/api/teams', payload, headers=make_headers(user))

        assert response.status_code == 409
        assert response.get_json()['code'] == 'CONFLICT'

    def test_own_rut(self, client, user, manager, make_headers):
        response = _post(client, '/api/teams', {'rut': '11.111.111-1', 'nombre': 'Marta', 'apellido': 'Soto'},
                         headers=make_headers(user))

        assert response.status_code == 400

    def test_without_profile(self, client, user, make_headers):
        response = _post(client, '/api/teams', {'rut': '22222222-2', 'nombre': 'Pedro', 'apellido': 'Díaz'},
                         headers=make_headers(user))

        assert response.status_code == 403
        assert client.get('/api/teams', headers=make_headers(user)).get_json()['data'] == []

    def test_incomplete_profile(self, client, db, user, manager, make_headers):
        manager.medio = None
        db.session.commit()

        response = _post(client, '/api/teams', {'rut': '22222222-2', 'nombre': 'Pedro', 'apellido': 'Díaz'},
                         headers=make_headers(user))

        assert response.status_code == 403
        assert response.get_json()['details']['missing_fields'][0]['key'] == 'medio'

    def test_roster_for_event(self, client, user, manager, event, registration_form, make_headers):
        _post(client, '/api/teams', {'rut': registration_form['rut'], 'nombre': 'Ana', 'apellido': 'Rojas'},
              headers=make_headers(user))
        _post(client, '/api/teams', {'rut': '22222222-2', 'nombre': 'Pedro', 'apellido': 'Díaz'},
              headers=make_headers(user))
        _post(client, '/api/registrations', registration_form)

        response = client.get(f'/api/teams?event_id={event.id}', headers=make_headers(user))

        assert response.status_code == 200
        items = {item['profile']['rut']: item for item in response.get_json()['data']}
        assert items['12.345.678-5']['already_registered'] is True
        assert items['12.345.678-5']['autofill']['cargo'] == 'Periodista'
        assert items['22.222.222-2']['already_registered'] is False

    def test_update_and_remove(self, client, user, manager, make_headers):
        created = _post(client, '/api/teams', {'rut': '22222222-2', 'nombre': 'Pedro', 'apellido': 'Díaz'},
                        headers=make_headers(user)).get_json()['data']

        updated = client.patch(f"/api/teams/{created['id']}", data=json.dumps({'notas': 'Solo partidos de local'}),
                               content_type='application/json', headers=make_headers(user))
        removed = client.delete(f"/api/teams/{created['id']}", headers=make_headers(user))

        assert updated.get_json()['data']['notas'] == 'Solo partidos de local'
        assert removed.status_code == 200
        assert TeamMember.query.filter_by(manager_id=manager.id).count() == 0

    def test_unknown_member(self, client, user, manager, make_headers):
        response = client.delete('/api/teams/00000000-0000-0000-0000-000000000000', headers=make_headers(user))

        assert response.status_code == 404
