"""
Integration Tests for the full letter request flow
"""
import pytest
from httpx import AsyncClient
from faker import Faker

fake = Faker()


async def _register_and_login(client: AsyncClient, **profile) -> dict:
    password = 'securePassword123!'
    user_data = {
        'email': fake.unique.email(),
        'password': password,
        'full_name': fake.name(),
        **profile,
    }
    register_response = await client.post('/api/v1/auth/register', json=user_data)
    assert register_response.status_code == 201

    login_response = await client.post('/api/v1/auth/login', json={
        'email': user_data['email'],
        'password': password,
    })
    assert login_response.status_code == 200
    return {'Authorization': f'Bearer {login_response.json()["access_token"]}'}


class TestLetterLifecycle:
    """Register, request, approve, renumber"""

    async def test_request_approve_cancel_reassign(self, client: AsyncClient):
        student = await _register_and_login(client, role='student', nim=fake.unique.numerify('##########'))
        supervisor = await _register_and_login(
            client, role='supervisor', nip=fake.unique.numerify('##################')
        )

        # Student requests two research letters
        letter_ids = []
        for title in ('Soil analysis', 'River sediment'):
            response = await client.post('/api/v1/letters', headers=student, json={
                'letter_type': 'SKP',
                'supplementary_data': {
                    'judul_penelitian': title,
                    'lokasi_penelitian': 'Bogor',
                    'tanggal_mulai': '2025-11-01',
                    'tanggal_selesai': '2025-12-01',
                },
            })
            assert response.status_code == 201
            letter_ids.append(response.json()['id'])

        # Supervisor approves both in order
        numbers = []
        for letter_id in letter_ids:
            response = await client.put(
                f'/api/v1/letters/{letter_id}/status', headers=supervisor, json={'status': 'approved'}
            )
            assert response.status_code == 200
            numbers.append(response.json()['letter_number'])
        assert numbers == ['2025/10/SKP/001', '2025/10/SKP/002']

        # Cancelling the first number leaves a gap; the next assignment continues past the max
        response = await client.put(f'/api/v1/letters/{letter_ids[0]}/number/cancel', headers=supervisor)
        assert response.json()['letter_number'] is None

        response = await client.put(f'/api/v1/letters/{letter_ids[0]}/number/assign', headers=supervisor)
        assert response.json()['letter_number'] == '2025/10/SKP/003'

        # Student sees their letters with numbers
        response = await client.get('/api/v1/letters', headers=student, params={'status': 'approved'})
        assert {item['letter_number'] for item in response.json()['items']} == {
            '2025/10/SKP/002',
            '2025/10/SKP/003',
        }

        # Numbering statistics reflect the year
        response = await client.get('/api/v1/letters/stats/numbering', headers=supervisor, params={'year': 2025})
        assert response.json()['by_type']['SKP'] == {'count': 2, 'last_number': 3}


class TestAPIHealthCheck:
    """Test API health and basic endpoints"""

    async def test_api_root(self, client: AsyncClient):
        response = await client.get('/')

        assert response.status_code == 200
        assert response.json()['health'] == '/health'

    async def test_health_endpoint(self, client: AsyncClient):
        response = await client.get('/health')

        assert response.status_code == 200
        assert response.json()['status'] == 'healthy'

    async def test_api_v1_health(self, client: AsyncClient):
        response = await client.get('/api/v1/health')

        assert response.json() == {'status': 'healthy', 'service': 'letterdesk-backend'}
