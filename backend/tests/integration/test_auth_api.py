"""
Integration Tests for signup, login and the current-user endpoints
"""
import pytest
from httpx import AsyncClient
from faker import Faker

fake = Faker()

PASSWORD = 'testpassword123'


def signup_payload(**overrides):
    payload = {
        'name': 'Asha Admin',
        'email': 'founder@schoolhub.io',
        'password': 'founderpass',
        'user_number': 900001,
        'school_name': 'Riverside Public School',
        'contact_email': 'office@schoolhub.io',
        'school_address': '12 River Road',
        'theme_color': '#112233',
    }
    payload.update(overrides)
    return payload


class TestSignup:

    @pytest.mark.asyncio
    async def test_signup_creates_school_and_admin(self, client: AsyncClient, db_session):
        response = await client.post('/api/auth/signup', json=signup_payload())

        assert response.status_code == 201
        data = response.json()
        assert data['success'] is True
        assert data['token']
        assert data['user']['role'] == 'admin'
        assert data['user']['user_number'] == 900001
        assert data['school']['name'] == 'Riverside Public School'
        assert data['school']['display_name'] == 'Riverside Public School'
        assert data['school']['theme_color'] == '#112233'
        assert data['user']['school_id'] == data['school']['id']

    @pytest.mark.asyncio
    async def test_duplicate_school_name(self, client: AsyncClient, db_session):
        await client.post('/api/auth/signup', json=signup_payload())

        response = await client.post('/api/auth/signup', json=signup_payload(
            school_name='riverside public school',
            email='other@schoolhub.io',
            user_number=900002,
        ))

        assert response.status_code == 409
        assert response.json()['message'] == 'School name already exists'

    @pytest.mark.asyncio
    async def test_duplicate_email(self, client: AsyncClient, admin_user):
        response = await client.post('/api/auth/signup', json=signup_payload(email=admin_user.email))

        assert response.status_code == 409
        assert response.json()['success'] is False

    @pytest.mark.asyncio
    async def test_user_number_out_of_range(self, client: AsyncClient, db_session):
        response = await client.post('/api/auth/signup', json=signup_payload(user_number=12))

        assert response.status_code == 422
        assert response.json()['message'] == 'Validation failed'


class TestLogin:

    @pytest.mark.asyncio
    async def test_login_success(self, client: AsyncClient, teacher_user):
        response = await client.post('/api/auth/login', json={
            'email': teacher_user.email.upper(),
            'password': PASSWORD,
        })

        assert response.status_code == 200
        data = response.json()
        assert data['token']
        assert data['user']['id'] == teacher_user.id
        assert data['user']['last_login'] is not None
        assert data['school']['id'] == teacher_user.school_id

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client: AsyncClient, teacher_user):
        response = await client.post('/api/auth/login', json={
            'email': teacher_user.email,
            'password': 'wrong-password',
        })

        assert response.status_code == 401
        body = response.json()
        assert body['success'] is False
        assert body['message'] == 'Invalid credentials'
        assert body['code'] == 'AUTH_FAILED'

    @pytest.mark.asyncio
    async def test_login_unknown_email(self, client: AsyncClient, db_session):
        response = await client.post('/api/auth/login', json={
            'email': 'nobody@schoolhub.io',
            'password': PASSWORD,
        })

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_login_inactive_account(self, client: AsyncClient, make_user):
        from app.models.user import UserRole

        user = await make_user(UserRole.STUDENT, is_active=False)
        response = await client.post('/api/auth/login', json={'email': user.email, 'password': PASSWORD})

        assert response.status_code == 403
        assert response.json()['message'] == 'Account is inactive'


class TestCurrentUser:

    @pytest.mark.asyncio
    async def test_me(self, client: AsyncClient, faculty_user, faculty_headers):
        response = await client.get('/api/auth/me', headers=faculty_headers)

        assert response.status_code == 200
        data = response.json()['data']
        assert data['user']['id'] == faculty_user.id
        assert data['permissions'] == ['student_affairs']
        assert data['school']['id'] == faculty_user.school_id

    @pytest.mark.asyncio
    async def test_me_requires_token(self, client: AsyncClient, db_session):
        response = await client.get('/api/auth/me')

        assert response.status_code == 401
        assert response.json()['message'] == 'No token provided'

    @pytest.mark.asyncio
    async def test_me_rejects_garbage_token(self, client: AsyncClient, db_session):
        response = await client.get('/api/auth/me', headers={'Authorization': 'Bearer not-a-jwt'})

        assert response.status_code == 401
        assert response.json()['success'] is False

    @pytest.mark.asyncio
    async def test_validate_and_refresh(self, client: AsyncClient, student_user, student_headers):
        validated = await client.get('/api/auth/validate-token', headers=student_headers)
        refreshed = await client.post('/api/auth/refresh', headers=student_headers)

        assert validated.json()['valid'] is True
        assert validated.json()['user']['id'] == student_user.id
        assert refreshed.status_code == 200
        assert refreshed.json()['data']['token']


class TestProfile:

    @pytest.mark.asyncio
    async def test_update_name_and_phone(self, client: AsyncClient, student_headers):
        response = await client.put('/api/auth/profile', headers=student_headers, json={
            'name': '  Ravi Kumar ',
            'phone': '5550101',
        })

        assert response.status_code == 200
        data = response.json()['data']
        assert data['name'] == 'Ravi Kumar'
        assert data['phone'] == '5550101'

    @pytest.mark.asyncio
    async def test_change_password_then_login(self, client: AsyncClient, student_user, student_headers):
        response = await client.put('/api/auth/profile', headers=student_headers, json={
            'current_password': PASSWORD,
            'new_password': 'brand-new-pass',
        })
        assert response.status_code == 200

        login = await client.post('/api/auth/login', json={
            'email': student_user.email,
            'password': 'brand-new-pass',
        })
        assert login.status_code == 200

    @pytest.mark.asyncio
    async def test_change_password_wrong_current(self, client: AsyncClient, student_headers):
        response = await client.put('/api/auth/profile', headers=student_headers, json={
            'current_password': 'not-it',
            'new_password': 'brand-new-pass',
        })

        assert response.status_code == 400
        assert response.json()['message'] == 'Current password is incorrect'

    @pytest.mark.asyncio
    async def test_new_password_needs_current(self, client: AsyncClient, student_headers):
        response = await client.put('/api/auth/profile', headers=student_headers, json={
            'new_password': 'brand-new-pass',
        })

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_email_taken(self, client: AsyncClient, student_headers, teacher_user):
        response = await client.put('/api/auth/profile', headers=student_headers, json={
            'email': teacher_user.email,
        })

        assert response.status_code == 409
