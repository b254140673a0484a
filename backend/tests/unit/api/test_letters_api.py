"""
Unit Tests for Letter API Endpoints
Tests for: requests, visibility, approval flow, numbering management
"""
import pytest
from httpx import AsyncClient

from letterdesk.models.letter import LetterStatus

LETTERS_URL = '/api/v1/letters'

SKA_DATA = {'semester': '5', 'tahun_akademik': '2025/2026'}


async def _request_ska(client: AsyncClient, headers: dict) -> dict:
    response = await client.post(
        LETTERS_URL,
        json={'letter_type': 'SKA', 'supplementary_data': SKA_DATA, 'purpose': 'Scholarship'},
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()


class TestLetterTypes:
    """Test letter type catalog endpoint"""

    async def test_list_types(self, client: AsyncClient, student_headers):
        response = await client.get(f'{LETTERS_URL}/types', headers=student_headers)

        assert response.status_code == 200
        types = {item['code']: item for item in response.json()}
        assert len(types) == 31
        assert types['SKA']['required_fields'] == ['semester', 'tahun_akademik']

    async def test_list_types_requires_auth(self, client: AsyncClient):
        response = await client.get(f'{LETTERS_URL}/types')

        assert response.status_code in [401, 403]


class TestRequestLetter:
    """Test letter request endpoint"""

    async def test_student_requests_letter(self, client: AsyncClient, student_user, student_headers):
        data = await _request_ska(client, student_headers)

        assert data['status'] == 'pending'
        assert data['letter_type'] == 'SKA'
        assert data['letter_number'] is None
        assert data['requester_id'] == student_user.id
        assert data['letter_type_info']['name'] == 'Surat Keterangan Aktif Kuliah'

    async def test_lowercase_type_accepted(self, client: AsyncClient, student_headers):
        response = await client.post(
            LETTERS_URL,
            json={'letter_type': 'ska', 'supplementary_data': SKA_DATA},
            headers=student_headers,
        )

        assert response.status_code == 201
        assert response.json()['letter_type'] == 'SKA'

    async def test_unknown_type(self, client: AsyncClient, student_headers):
        response = await client.post(
            LETTERS_URL,
            json={'letter_type': 'NOPE'},
            headers=student_headers,
        )

        assert response.status_code == 400
        assert response.json()['code'] == 'INVALID_LETTER_TYPE'

    async def test_missing_required_fields(self, client: AsyncClient, student_headers):
        response = await client.post(
            LETTERS_URL,
            json={'letter_type': 'SKA', 'supplementary_data': {'semester': '5', 'tahun_akademik': ''}},
            headers=student_headers,
        )

        assert response.status_code == 400
        body = response.json()
        assert body['detail'] == 'Missing required fields'
        assert body['details']['missing_fields'] == ['tahun_akademik']

    async def test_supervisor_cannot_request(self, client: AsyncClient, supervisor_headers):
        response = await client.post(
            LETTERS_URL,
            json={'letter_type': 'SKA', 'supplementary_data': SKA_DATA},
            headers=supervisor_headers,
        )

        assert response.status_code == 403

    async def test_requires_auth(self, client: AsyncClient):
        response = await client.post(LETTERS_URL, json={'letter_type': 'SKA'})

        assert response.status_code in [401, 403]


class TestListAndGetLetters:
    """Test listing and fetching letters"""

    async def test_student_sees_only_own_letters(
        self, client: AsyncClient, make_letter, other_student, student_headers
    ):
        own_id = await make_letter()
        await make_letter(requester_id=other_student.id)

        response = await client.get(LETTERS_URL, headers=student_headers)

        assert response.status_code == 200
        data = response.json()
        assert data['total'] == 1
        assert data['items'][0]['id'] == own_id

    async def test_supervisor_sees_all_letters(self, client: AsyncClient, make_letter, other_student, supervisor_headers):
        await make_letter()
        await make_letter(requester_id=other_student.id)

        response = await client.get(LETTERS_URL, headers=supervisor_headers)

        assert response.json()['total'] == 2

    async def test_filters(self, client: AsyncClient, make_letter, supervisor_headers):
        await make_letter()
        await make_letter(letter_type='SKL')
        approved_id = await make_letter(status=LetterStatus.APPROVED, letter_number='2025/10/SKA/001')

        response = await client.get(
            LETTERS_URL,
            params={'status': 'approved', 'letter_type': 'ska'},
            headers=supervisor_headers,
        )

        data = response.json()
        assert data['total'] == 1
        assert data['items'][0]['id'] == approved_id

    async def test_invalid_status_filter(self, client: AsyncClient, supervisor_headers):
        response = await client.get(LETTERS_URL, params={'status': 'archived'}, headers=supervisor_headers)

        assert response.status_code == 400

    async def test_pagination(self, client: AsyncClient, make_letter, supervisor_headers):
        for _ in range(3):
            await make_letter()

        response = await client.get(LETTERS_URL, params={'page': 2, 'page_size': 2}, headers=supervisor_headers)

        data = response.json()
        assert data['total'] == 3
        assert len(data['items']) == 1
        assert data['has_previous'] is True
        assert data['has_next'] is False

    async def test_get_own_letter(self, client: AsyncClient, make_letter, student_headers):
        letter_id = await make_letter()

        response = await client.get(f'{LETTERS_URL}/{letter_id}', headers=student_headers)

        assert response.status_code == 200
        assert response.json()['letter_type_info']['code'] == 'SKA'

    async def test_get_letter_id_is_case_insensitive(self, client: AsyncClient, make_letter, student_headers):
        letter_id = await make_letter()

        response = await client.get(f'{LETTERS_URL}/{letter_id.upper()}', headers=student_headers)

        assert response.status_code == 200
        assert response.json()['id'] == letter_id

    async def test_get_other_students_letter(self, client: AsyncClient, make_letter, other_student_headers):
        letter_id = await make_letter()

        response = await client.get(f'{LETTERS_URL}/{letter_id}', headers=other_student_headers)

        assert response.status_code == 403

    async def test_get_missing_letter(self, client: AsyncClient, supervisor_headers):
        response = await client.get(
            f'{LETTERS_URL}/00000000-0000-0000-0000-000000000000', headers=supervisor_headers
        )

        assert response.status_code == 404
        assert response.json()['code'] == 'LETTER_NOT_FOUND'


class TestStatusChange:
    """Test approve/reject endpoint"""

    async def test_approve_assigns_number(self, client: AsyncClient, student_headers, supervisor_user, supervisor_headers):
        letter = await _request_ska(client, student_headers)

        response = await client.put(
            f"{LETTERS_URL}/{letter['id']}/status",
            json={'status': 'approved'},
            headers=supervisor_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data['status'] == 'approved'
        assert data['letter_number'] == '2025/10/SKA/001'
        assert data['approved_by'] == supervisor_user.id
        assert data['numbering_error'] is None

    async def test_sequential_approvals(self, client: AsyncClient, student_headers, supervisor_headers):
        first = await _request_ska(client, student_headers)
        second = await _request_ska(client, student_headers)

        numbers = []
        for letter in (first, second):
            response = await client.put(
                f"{LETTERS_URL}/{letter['id']}/status",
                json={'status': 'approved'},
                headers=supervisor_headers,
            )
            numbers.append(response.json()['letter_number'])

        assert numbers == ['2025/10/SKA/001', '2025/10/SKA/002']

    async def test_reject_with_reason(self, client: AsyncClient, make_letter, supervisor_headers):
        letter_id = await make_letter()

        response = await client.put(
            f'{LETTERS_URL}/{letter_id}/status',
            json={'status': 'rejected', 'rejection_reason': 'Incomplete documents'},
            headers=supervisor_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data['status'] == 'rejected'
        assert data['rejection_reason'] == 'Incomplete documents'
        assert data['letter_number'] is None

    async def test_reject_without_reason(self, client: AsyncClient, make_letter, supervisor_headers):
        letter_id = await make_letter()

        response = await client.put(
            f'{LETTERS_URL}/{letter_id}/status',
            json={'status': 'rejected'},
            headers=supervisor_headers,
        )

        assert response.status_code == 400

    async def test_unsupported_status(self, client: AsyncClient, make_letter, supervisor_headers):
        letter_id = await make_letter()

        response = await client.put(
            f'{LETTERS_URL}/{letter_id}/status',
            json={'status': 'completed'},
            headers=supervisor_headers,
        )

        assert response.status_code == 400

    async def test_approve_twice(self, client: AsyncClient, make_letter, supervisor_headers):
        letter_id = await make_letter()
        url = f'{LETTERS_URL}/{letter_id}/status'

        await client.put(url, json={'status': 'approved'}, headers=supervisor_headers)
        response = await client.put(url, json={'status': 'approved'}, headers=supervisor_headers)

        assert response.status_code == 409
        assert response.json()['detail'] == 'Letter is already approved'

    async def test_student_cannot_approve(self, client: AsyncClient, make_letter, student_headers):
        letter_id = await make_letter()

        response = await client.put(
            f'{LETTERS_URL}/{letter_id}/status',
            json={'status': 'approved'},
            headers=student_headers,
        )

        assert response.status_code == 403

    async def test_lecturer_cannot_approve(self, client: AsyncClient, make_letter, lecturer_headers):
        letter_id = await make_letter()

        response = await client.put(
            f'{LETTERS_URL}/{letter_id}/status',
            json={'status': 'approved'},
            headers=lecturer_headers,
        )

        assert response.status_code == 403


class TestNumberManagement:
    """Test assign/cancel/edit number endpoints"""

    async def test_cancel_then_assign_leaves_gap(self, client: AsyncClient, make_letter, supervisor_headers):
        first_id = await make_letter(status=LetterStatus.APPROVED, letter_number='2025/10/SKA/001')
        second_id = await make_letter(status=LetterStatus.APPROVED, letter_number='2025/10/SKA/002')

        response = await client.put(f'{LETTERS_URL}/{second_id}/number/cancel', headers=supervisor_headers)
        assert response.status_code == 200
        assert response.json()['letter_number'] is None

        response = await client.put(f'{LETTERS_URL}/{second_id}/number/assign', headers=supervisor_headers)
        assert response.status_code == 200
        assert response.json()['letter_number'] == '2025/10/SKA/002'

        response = await client.get(f'{LETTERS_URL}/{first_id}', headers=supervisor_headers)
        assert response.json()['letter_number'] == '2025/10/SKA/001'

    async def test_cancel_without_number(self, client: AsyncClient, make_letter, supervisor_headers):
        letter_id = await make_letter(status=LetterStatus.APPROVED)

        response = await client.put(f'{LETTERS_URL}/{letter_id}/number/cancel', headers=supervisor_headers)

        assert response.status_code == 409

    async def test_assign_pending_letter(self, client: AsyncClient, make_letter, supervisor_headers):
        letter_id = await make_letter()

        response = await client.put(f'{LETTERS_URL}/{letter_id}/number/assign', headers=supervisor_headers)

        assert response.status_code == 409
        assert response.json()['detail'] == 'Only approved letters can be assigned a number'

    async def test_edit_number(self, client: AsyncClient, make_letter, supervisor_headers):
        letter_id = await make_letter(status=LetterStatus.APPROVED, letter_number='2025/10/SKA/001')

        response = await client.put(
            f'{LETTERS_URL}/{letter_id}/number/edit',
            json={'letter_number': 'B/123/UN1/2025'},
            headers=supervisor_headers,
        )

        assert response.status_code == 200
        assert response.json()['letter_number'] == 'B/123/UN1/2025'

    async def test_edit_number_conflict(self, client: AsyncClient, make_letter, supervisor_headers):
        await make_letter(status=LetterStatus.APPROVED, letter_number='2025/10/SKA/001')
        letter_id = await make_letter(status=LetterStatus.APPROVED, letter_number='2025/10/SKA/002')

        response = await client.put(
            f'{LETTERS_URL}/{letter_id}/number/edit',
            json={'letter_number': '2025/10/SKA/001'},
            headers=supervisor_headers,
        )

        assert response.status_code == 409
        assert response.json()['code'] == 'LETTER_NUMBER_CONFLICT'

    async def test_edit_number_empty(self, client: AsyncClient, make_letter, supervisor_headers):
        letter_id = await make_letter(status=LetterStatus.APPROVED, letter_number='2025/10/SKA/001')

        response = await client.put(
            f'{LETTERS_URL}/{letter_id}/number/edit',
            json={'letter_number': ''},
            headers=supervisor_headers,
        )

        assert response.status_code == 422

    async def test_statistics(self, client: AsyncClient, make_letter, supervisor_headers):
        await make_letter(status=LetterStatus.APPROVED, letter_number='2025/10/SKA/001')
        await make_letter(status=LetterStatus.APPROVED, letter_number='2025/10/SKA/002')
        await make_letter(letter_type='SKL', status=LetterStatus.APPROVED, letter_number='2025/09/SKL/001')

        response = await client.get(
            f'{LETTERS_URL}/stats/numbering', params={'year': 2025}, headers=supervisor_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data['year'] == 2025
        assert data['total_letters'] == 3
        assert data['by_type']['SKA'] == {'count': 2, 'last_number': 2}
        assert data['by_type']['SKL'] == {'count': 1, 'last_number': 1}

    async def test_statistics_requires_supervisor(self, client: AsyncClient, student_headers):
        response = await client.get(f'{LETTERS_URL}/stats/numbering', headers=student_headers)

        assert response.status_code == 403

    async def test_reconcile(self, client: AsyncClient, make_letter, supervisor_headers):
        letter_id = await make_letter(status=LetterStatus.APPROVED, numbering_error='Storage unavailable')

        response = await client.post(f'{LETTERS_URL}/numbering/reconcile', headers=supervisor_headers)

        assert response.status_code == 200
        data = response.json()
        assert data['attempted'] == 1
        assert data['numbered'] == [{'letter_id': letter_id, 'letter_number': '2025/10/SKA/001'}]
        assert data['failed'] == []


class TestDeleteLetter:
    """Test letter deletion endpoint"""

    async def test_requester_deletes_pending(self, client: AsyncClient, make_letter, student_headers):
        letter_id = await make_letter()

        response = await client.delete(f'{LETTERS_URL}/{letter_id}', headers=student_headers)

        assert response.status_code == 200
        assert response.json() == {'message': 'Letter deleted successfully', 'letter_id': letter_id}

        response = await client.get(f'{LETTERS_URL}/{letter_id}', headers=student_headers)
        assert response.status_code == 404

    async def test_cannot_delete_approved(self, client: AsyncClient, make_letter, student_headers):
        letter_id = await make_letter(status=LetterStatus.APPROVED, letter_number='2025/10/SKA/001')

        response = await client.delete(f'{LETTERS_URL}/{letter_id}', headers=student_headers)

        assert response.status_code == 409

    async def test_other_student_cannot_delete(self, client: AsyncClient, make_letter, other_student_headers):
        letter_id = await make_letter()

        response = await client.delete(f'{LETTERS_URL}/{letter_id}', headers=other_student_headers)

        assert response.status_code == 403

    async def test_supervisor_deletes_pending(self, client: AsyncClient, make_letter, supervisor_headers):
        letter_id = await make_letter()

        response = await client.delete(f'{LETTERS_URL}/{letter_id}', headers=supervisor_headers)

        assert response.status_code == 200
