"""
Integration Tests for permission grants
"""
import pytest
from httpx import AsyncClient


class TestPermissionGrants:

    @pytest.mark.asyncio
    async def test_available_permissions(self, client: AsyncClient, admin_headers):
        response = await client.get('/api/permissions/meta/available', headers=admin_headers)

        names = [p['name'] for p in response.json()['data']]
        assert names == ['student_affairs', 'accounts_office']

    @pytest.mark.asyncio
    async def test_grant_and_revoke(self, client: AsyncClient, admin_headers, teacher_user):
        granted = await client.post('/api/permissions/grant', headers=admin_headers, json={
            'user_number': teacher_user.user_number,
            'permission': 'accounts_office',
        })
        assert granted.status_code == 200
        assert granted.json()['data']['permissions'] == ['accounts_office']

        revoked = await client.post('/api/permissions/revoke', headers=admin_headers, json={
            'user_number': teacher_user.user_number,
            'permission': 'accounts_office',
        })
        assert revoked.status_code == 200
        assert revoked.json()['data']['permissions'] == []

        detail = await client.get(f'/api/permissions/user/{teacher_user.user_number}', headers=admin_headers)
        grants = detail.json()['data']['grants']
        assert len(grants) == 1
        assert grants[0]['is_active'] is False
        assert grants[0]['revoked_at'] is not None

    @pytest.mark.asyncio
    async def test_regrant_reuses_row(self, client: AsyncClient, admin_headers, teacher_user):
        body = {'user_number': teacher_user.user_number, 'permission': 'student_affairs'}
        await client.post('/api/permissions/grant', headers=admin_headers, json=body)
        await client.post('/api/permissions/revoke', headers=admin_headers, json=body)
        await client.post('/api/permissions/grant', headers=admin_headers, json=body)

        audit = await client.get('/api/permissions/audit', headers=admin_headers)
        entries = [e for e in audit.json()['data'] if e['user_id'] == teacher_user.id]
        assert len(entries) == 1
        assert entries[0]['is_active'] is True
        assert entries[0]['user']['user_number'] == teacher_user.user_number

    @pytest.mark.asyncio
    async def test_double_grant_rejected(self, client: AsyncClient, admin_headers, faculty_user):
        response = await client.post('/api/permissions/grant', headers=admin_headers, json={
            'user_number': faculty_user.user_number,
            'permission': 'student_affairs',
        })

        assert response.status_code == 400
        assert response.json()['message'] == 'User already has this permission'

    @pytest.mark.asyncio
    async def test_students_cannot_hold_permissions(self, client: AsyncClient, admin_headers, student_user):
        response = await client.post('/api/permissions/grant', headers=admin_headers, json={
            'user_number': student_user.user_number,
            'permission': 'student_affairs',
        })

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_revoke_missing_permission(self, client: AsyncClient, admin_headers, teacher_user):
        response = await client.post('/api/permissions/revoke', headers=admin_headers, json={
            'user_number': teacher_user.user_number,
            'permission': 'student_affairs',
        })

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_replace_permission_set(self, client: AsyncClient, admin_headers, faculty_user):
        response = await client.put(f'/api/permissions/user/{faculty_user.user_number}', headers=admin_headers, json={
            'permissions': ['accounts_office'],
        })

        assert response.status_code == 200
        assert response.json()['data']['permissions'] == ['accounts_office']

    @pytest.mark.asyncio
    async def test_list_holders(self, client: AsyncClient, admin_headers, faculty_user, teacher_user):
        response = await client.get('/api/permissions', headers=admin_headers)

        holders = [h['user']['id'] for h in response.json()['data']]
        assert holders == [faculty_user.id]

    @pytest.mark.asyncio
    async def test_unknown_user_number(self, client: AsyncClient, admin_headers):
        response = await client.post('/api/permissions/grant', headers=admin_headers, json={
            'user_number': 999999,
            'permission': 'student_affairs',
        })

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_admin_only(self, client: AsyncClient, faculty_headers):
        response = await client.get('/api/permissions', headers=faculty_headers)

        assert response.status_code == 403
        assert response.json()['message'] == 'Admin access required'
