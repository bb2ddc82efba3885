"""
Integration Tests for the payment due date and the manual reset
"""
import pytest
from httpx import AsyncClient

from app.models.user import UserRole, PermissionName


class TestDueDateConfig:

    @pytest.mark.asyncio
    async def test_default_day(self, client: AsyncClient, student_headers):
        response = await client.get('/api/due-date-config', headers=student_headers)

        assert response.status_code == 200
        assert response.json()['data']['day_of_month'] == 1

    @pytest.mark.asyncio
    async def test_accounts_office_sets_day(self, client: AsyncClient, make_user, headers_for, student_headers):
        accountant = await make_user(UserRole.FACULTY, permissions=[PermissionName.ACCOUNTS_OFFICE])

        response = await client.post('/api/due-date-config', headers=headers_for(accountant),
                                     json={'day_of_month': 15})
        current = await client.get('/api/due-date-config', headers=student_headers)

        assert response.json()['message'] == 'Due date updated successfully'
        assert current.json()['data']['day_of_month'] == 15

    @pytest.mark.asyncio
    async def test_day_out_of_range(self, client: AsyncClient, admin_headers):
        response = await client.post('/api/due-date-config', headers=admin_headers, json={'day_of_month': 32})

        assert response.status_code == 400
        assert response.json()['message'] == 'Day of month must be between 1 and 31'

    @pytest.mark.asyncio
    async def test_teacher_cannot_set(self, client: AsyncClient, teacher_headers):
        response = await client.post('/api/due-date-config', headers=teacher_headers, json={'day_of_month': 5})

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_reset_now(self, client: AsyncClient, admin_user, admin_headers, student_user):
        response = await client.post('/api/due-date-config/reset-now', headers=admin_headers)
        history = await client.get(f'/api/users/{student_user.id}/payments', headers=admin_headers)

        data = response.json()['data']
        assert data['applied'] == 1
        assert data['student'] == 1
        assert data['admin'] == 1
        assert history.json()['data'][0]['status'] == 'pending'
        assert history.json()['data'][0]['amount'] == 500.0
