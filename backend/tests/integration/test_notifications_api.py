"""
Integration Tests for the notification inbox and live channel
"""
import pytest
from datetime import timedelta
from httpx import AsyncClient
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.main import app
from app.core.config import settings
from app.core.security import create_user_token
from app.models.base import utcnow
from app.models.notification import Notification, NotificationRecipient, NotificationStatus, RecipientType
from app.models.user import UserRole


async def send(client, headers, **overrides):
    payload = {
        'title': 'Sports day',
        'message': 'Sports day is on Friday.',
        'recipient_type': 'all_students',
    }
    payload.update(overrides)
    return await client.post('/api/notifications/send', headers=headers, json=payload)


class TestSending:

    @pytest.mark.asyncio
    async def test_send_to_all_students(self, client: AsyncClient, admin_user, admin_headers, make_user,
                                        student_user):
        await make_user(UserRole.STUDENT)

        response = await send(client, admin_headers)

        assert response.status_code == 201
        body = response.json()
        assert body['message'] == 'Notification sent successfully'
        assert body['recipient_count'] == 2
        assert body['data']['status'] == 'sent'
        assert body['data']['sender']['id'] == admin_user.id

    @pytest.mark.asyncio
    async def test_scheduled_notification_hidden_until_sent(self, client: AsyncClient, admin_headers,
                                                            student_user, student_headers):
        later = (utcnow() + timedelta(days=2)).isoformat()

        response = await send(client, admin_headers, scheduled_for=later)
        inbox = await client.get('/api/notifications/my-notifications', headers=student_headers)

        assert response.json()['message'] == 'Notification scheduled successfully'
        assert response.json()['data']['status'] == 'scheduled'
        assert inbox.json()['data'] == []
        assert inbox.json()['unread_count'] == 0

    @pytest.mark.asyncio
    async def test_system_type_rejected(self, client: AsyncClient, admin_headers, student_user):
        response = await send(client, admin_headers, recipient_type='system', recipient_ids=[student_user.id])

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_course_needs_id(self, client: AsyncClient, admin_headers, student_user):
        response = await send(client, admin_headers, recipient_type='course_students')

        assert response.status_code == 400
        assert response.json()['message'] == 'Course ID is required'

    @pytest.mark.asyncio
    async def test_no_recipients(self, client: AsyncClient, admin_headers):
        response = await send(client, admin_headers, recipient_type='all_teachers')

        assert response.status_code == 400
        assert response.json()['message'] == 'No recipients found for the specified criteria'

    @pytest.mark.asyncio
    async def test_admin_only(self, client: AsyncClient, teacher_headers, student_user):
        response = await send(client, teacher_headers)

        assert response.status_code == 403


class TestInbox:

    @pytest.mark.asyncio
    async def test_inbox_filters_and_stats(self, client: AsyncClient, admin_headers, student_user, student_headers):
        await send(client, admin_headers, title='Fee reminder', category='reminder', priority='high')
        await send(client, admin_headers, title='Library hours', category='info')

        everything = await client.get('/api/notifications/my-notifications', headers=student_headers)
        fees = await client.get('/api/notifications/my-notifications', headers=student_headers,
                                params={'category': 'reminder'})
        searched = await client.get('/api/notifications/my-notifications', headers=student_headers,
                                    params={'search': 'library'})
        stats = await client.get('/api/notifications/stats', headers=student_headers)

        assert everything.json()['unread_count'] == 2
        assert everything.json()['pagination']['total'] == 2
        assert [n['title'] for n in fees.json()['data']] == ['Fee reminder']
        assert [n['title'] for n in searched.json()['data']] == ['Library hours']
        assert stats.json()['data']['total'] == 2
        assert stats.json()['data']['unread'] == 2
        assert stats.json()['data']['by_category'] == {'reminder': 1, 'info': 1}
        assert stats.json()['data']['by_priority'] == {'high': 1, 'medium': 1}

    @pytest.mark.asyncio
    async def test_inbox_page_size_is_capped(self, client: AsyncClient, admin_headers, student_headers,
                                             monkeypatch):
        monkeypatch.setattr(settings, 'MAX_PAGE_SIZE', 1)
        await send(client, admin_headers)
        await send(client, admin_headers, title='Exam week')

        response = await client.get('/api/notifications/my-notifications', headers=student_headers,
                                    params={'limit': 50})

        assert len(response.json()['data']) == 1
        assert response.json()['pagination']['page_size'] == 1
        assert response.json()['pagination']['total_pages'] == 2

    @pytest.mark.asyncio
    async def test_mark_read(self, client: AsyncClient, admin_headers, student_headers):
        sent = await send(client, admin_headers)
        notification_id = sent.json()['data']['id']

        response = await client.patch(f'/api/notifications/{notification_id}/read', headers=student_headers)
        unread = await client.get('/api/notifications/my-notifications', headers=student_headers,
                                  params={'unread_only': True})

        assert response.json()['data']['is_read'] is True
        assert response.json()['data']['read_at'] is not None
        assert unread.json()['data'] == []

    @pytest.mark.asyncio
    async def test_mark_read_requires_recipient(self, client: AsyncClient, admin_headers, teacher_headers,
                                                student_user):
        sent = await send(client, admin_headers)

        response = await client.patch(f"/api/notifications/{sent.json()['data']['id']}/read",
                                      headers=teacher_headers)

        assert response.status_code == 403
        assert response.json()['message'] == 'You are not a recipient of this notification'

    @pytest.mark.asyncio
    async def test_mark_read_hides_scheduled(self, client: AsyncClient, admin_headers, student_headers):
        later = (utcnow() + timedelta(days=2)).isoformat()
        scheduled = await send(client, admin_headers, scheduled_for=later)

        response = await client.patch(f"/api/notifications/{scheduled.json()['data']['id']}/read",
                                      headers=student_headers)
        stats = await client.get('/api/notifications/stats', headers=student_headers)

        assert response.status_code == 404
        assert response.json()['code'] == 'NOTIFICATION_NOT_FOUND'
        assert stats.json()['data']['read'] == 0

    @pytest.mark.asyncio
    async def test_opening_marks_read(self, client: AsyncClient, admin_headers, student_headers):
        sent = await send(client, admin_headers)

        opened = await client.get(f"/api/notifications/{sent.json()['data']['id']}", headers=student_headers)
        stats = await client.get('/api/notifications/stats', headers=student_headers)

        assert opened.json()['data']['is_read'] is True
        assert stats.json()['data']['read'] == 1

    @pytest.mark.asyncio
    async def test_mark_all_read(self, client: AsyncClient, admin_headers, student_headers):
        await send(client, admin_headers)
        await send(client, admin_headers, title='Exam week')

        response = await client.post('/api/notifications/mark-all-read', headers=student_headers)
        stats = await client.get('/api/notifications/stats', headers=student_headers)

        assert response.json()['modified_count'] == 2
        assert stats.json()['data']['unread'] == 0

    @pytest.mark.asyncio
    async def test_delete(self, client: AsyncClient, admin_headers, student_headers):
        sent = await send(client, admin_headers)
        notification_id = sent.json()['data']['id']

        response = await client.delete(f'/api/notifications/{notification_id}', headers=admin_headers)
        inbox = await client.get('/api/notifications/my-notifications', headers=student_headers)

        assert response.status_code == 200
        assert inbox.json()['data'] == []

    @pytest.mark.asyncio
    async def test_test_send(self, client: AsyncClient, admin_headers):
        response = await client.post('/api/notifications/test/send', headers=admin_headers, json={})

        assert response.status_code == 201
        assert response.json()['socket_connected'] is False
        assert response.json()['data']['metadata']['is_test'] is True
        assert response.json()['data']['is_read'] is False


class TestLiveChannel:

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient, db_session):
        response = await client.get('/api/notifications/health')

        assert response.json()['data']['status'] == 'healthy'

    def test_socket_rejects_bad_token(self):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with TestClient(app).websocket_connect('/api/notifications/ws?token=not-a-jwt'):
                pass

        assert exc_info.value.code == 4001


async def add_notification(db_session, school, student, status) -> Notification:
    notification = Notification(
        school_id=school.id,
        title='Library closed',
        message='The library is closed on Monday.',
        recipient_type=RecipientType.SPECIFIC_USER,
        status=status,
        sent_at=utcnow() if status == NotificationStatus.SENT else None,
        recipients=[NotificationRecipient(user_id=student.id)],
    )
    db_session.add(notification)
    await db_session.commit()
    return notification


def open_socket(user):
    return TestClient(app).websocket_connect(f'/api/notifications/ws?token={create_user_token(user)}')


@pytest.fixture
async def sent_notification(db_session, school, student_user) -> Notification:
    return await add_notification(db_session, school, student_user, NotificationStatus.SENT)


@pytest.fixture
async def scheduled_notification(db_session, school, student_user) -> Notification:
    return await add_notification(db_session, school, student_user, NotificationStatus.SCHEDULED)


class TestLiveChannelEvents:

    def test_register_reports_unread_count(self, sent_notification, student_user):
        with open_socket(student_user) as ws:
            ws.send_json({'type': 'register'})
            event = ws.receive_json()

        assert event['type'] == 'registered'
        assert event['data'] == {'user_id': student_user.id, 'unread_count': 1}

    def test_ping(self, db_session, student_user):
        with open_socket(student_user) as ws:
            ws.send_json({'type': 'ping'})
            event = ws.receive_json()

        assert event['type'] == 'pong'
        assert 'timestamp' in event

    def test_mark_notification_read(self, sent_notification, student_user):
        notification = sent_notification

        with open_socket(student_user) as ws:
            ws.send_json({'type': 'markNotificationRead', 'data': {'notificationId': notification.id}})
            read = ws.receive_json()
            ws.send_json({'type': 'register'})
            registered = ws.receive_json()

        assert read['type'] == 'notificationRead'
        assert read['data'] == {'notification_id': notification.id}
        assert registered['data']['unread_count'] == 0

    def test_mark_scheduled_notification_read_is_refused(self, scheduled_notification, student_user):
        notification = scheduled_notification

        with open_socket(student_user) as ws:
            ws.send_json({'type': 'markNotificationRead', 'data': {'notification_id': notification.id}})
            event = ws.receive_json()

        assert event['type'] == 'error'
        assert event['data']['message'] == 'Notification not found'

    def test_mark_read_needs_id(self, db_session, student_user):
        with open_socket(student_user) as ws:
            ws.send_json({'type': 'markNotificationRead', 'data': {}})
            event = ws.receive_json()

        assert event['type'] == 'error'
        assert event['data']['message'] == 'notification_id is required'

    def test_unknown_event(self, db_session, student_user):
        with open_socket(student_user) as ws:
            ws.send_json({'type': 'subscribe'})
            event = ws.receive_json()

        assert event['type'] == 'error'
        assert event['data']['message'] == 'Unknown event type: subscribe'

    def test_invalid_json_keeps_socket_open(self, db_session, student_user):
        with open_socket(student_user) as ws:
            ws.send_text('not json')
            invalid = ws.receive_json()
            ws.send_json(['not', 'an', 'object'])
            malformed = ws.receive_json()
            ws.send_json({'type': 'ping'})
            pong = ws.receive_json()

        assert invalid['data']['message'] == 'Invalid JSON'
        assert malformed['data']['message'] == 'Invalid message format'
        assert pong['type'] == 'pong'
