"""
Integration Tests for quizzes, attempts and exports
"""
import pytest
from datetime import timedelta
from httpx import AsyncClient
from sqlalchemy import select, func

from app.models.base import utcnow
from app.models.quiz import QuizSubmission
from app.models.user import UserRole
from app.services.quiz_service import QuizService


QUESTIONS = [
    {'question': 'What is 3 x 4?', 'options': ['7', '12', '34'], 'correct_answer': 1, 'marks': 5},
    {'question': 'Square root of 81?', 'options': ['9', '8'], 'correct_answer': 0, 'marks': 5},
]


def quiz_payload(**overrides):
    payload = {
        'title': 'Times tables',
        'questions': QUESTIONS,
        'visible_until': (utcnow() + timedelta(days=3)).isoformat(),
    }
    payload.update(overrides)
    return payload


async def create_quiz(client, headers, course_id, **overrides):
    response = await client.post(f'/api/quizzes/course/{course_id}', headers=headers, json=quiz_payload(**overrides))
    assert response.status_code == 201, response.text
    return response.json()['data']


class TestQuizAuthoring:

    @pytest.mark.asyncio
    async def test_create_quiz(self, client: AsyncClient, teacher_headers, course):
        quiz = await create_quiz(client, teacher_headers, course.id)

        assert quiz['total_marks'] == 10
        assert quiz['question_count'] == 2
        assert quiz['max_attempts'] == 1
        assert quiz['allow_retake'] is False
        assert quiz['questions'][0]['correct_answer'] == 1

    @pytest.mark.asyncio
    async def test_single_attempt_resets_policy(self, client: AsyncClient, teacher_headers, course):
        quiz = await create_quiz(client, teacher_headers, course.id, allow_retake=True,
                                 min_score_to_pass=90, days_between_attempts=5)

        assert quiz['allow_retake'] is False
        assert quiz['min_score_to_pass'] == 60
        assert quiz['days_between_attempts'] == 1

    @pytest.mark.asyncio
    async def test_end_time_in_past(self, client: AsyncClient, teacher_headers, course):
        response = await client.post(f'/api/quizzes/course/{course.id}', headers=teacher_headers, json=quiz_payload(
            visible_until=(utcnow() - timedelta(minutes=5)).isoformat()
        ))

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_answer_key_must_match_options(self, client: AsyncClient, teacher_headers, course):
        response = await client.post(f'/api/quizzes/course/{course.id}', headers=teacher_headers, json=quiz_payload(
            questions=[{'question': 'Pick', 'options': ['a', 'b'], 'correct_answer': 2}]
        ))

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_student_cannot_create(self, client: AsyncClient, student_headers, course):
        response = await client.post(f'/api/quizzes/course/{course.id}', headers=student_headers, json=quiz_payload())

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_publishing_notifies_students(self, client: AsyncClient, teacher_headers, student_headers, course):
        await create_quiz(client, teacher_headers, course.id)

        inbox = await client.get('/api/notifications/my-notifications', headers=student_headers,
                                 params={'category': 'quiz'})

        assert [n['title'] for n in inbox.json()['data']] == ['New quiz: Times tables']

    @pytest.mark.asyncio
    async def test_update_and_delete(self, client: AsyncClient, teacher_headers, course):
        quiz = await create_quiz(client, teacher_headers, course.id)

        updated = await client.put(f"/api/quizzes/{quiz['id']}", headers=teacher_headers, json={
            'title': 'Times tables (v2)', 'max_attempts': 3, 'allow_retake': True,
        })
        assert updated.json()['data']['title'] == 'Times tables (v2)'
        assert updated.json()['data']['max_attempts'] == 3
        assert updated.json()['data']['allow_retake'] is True

        deleted = await client.delete(f"/api/quizzes/{quiz['id']}", headers=teacher_headers)
        assert deleted.status_code == 200
        missing = await client.get(f"/api/quizzes/{quiz['id']}", headers=teacher_headers)
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_replacing_questions_recomputes_total(self, client: AsyncClient, teacher_headers,
                                                         student_headers, course):
        one_mark = [dict(q, marks=1) for q in QUESTIONS]
        quiz = await create_quiz(client, teacher_headers, course.id, questions=one_mark)
        extra = [
            {'question': 'What is 10 - 7?', 'options': ['3', '4'], 'correct_answer': 0, 'marks': 1},
            {'question': 'What is 6 / 2?', 'options': ['2', '3'], 'correct_answer': 1, 'marks': 1},
        ]

        updated = await client.put(f"/api/quizzes/{quiz['id']}", headers=teacher_headers,
                                   json={'questions': one_mark + extra})
        result = await client.post(f"/api/quizzes/{quiz['id']}/submit", headers=student_headers,
                                   json={'answers': [1, 0, 1, 0]})

        assert quiz['total_marks'] == 2
        assert updated.json()['data']['total_marks'] == 4
        assert result.json()['data']['total'] == 4
        assert result.json()['data']['score'] == 2
        assert result.json()['data']['percentage'] == 50

    @pytest.mark.asyncio
    async def test_explicit_total_survives_question_update(self, client: AsyncClient, teacher_headers, course):
        quiz = await create_quiz(client, teacher_headers, course.id)

        updated = await client.put(f"/api/quizzes/{quiz['id']}", headers=teacher_headers,
                                   json={'questions': QUESTIONS[:1], 'total_marks': 20})

        assert updated.json()['data']['total_marks'] == 20
        assert updated.json()['data']['question_count'] == 1


class TestStudentView:

    @pytest.mark.asyncio
    async def test_answer_key_hidden(self, client: AsyncClient, teacher_headers, student_headers, course):
        quiz = await create_quiz(client, teacher_headers, course.id)

        response = await client.get(f"/api/quizzes/{quiz['id']}", headers=student_headers)

        assert response.status_code == 200
        assert all('correct_answer' not in q for q in response.json()['data']['questions'])

    @pytest.mark.asyncio
    async def test_unpublished_hidden(self, client: AsyncClient, teacher_headers, student_headers, course):
        draft = await create_quiz(client, teacher_headers, course.id, title='Draft', is_published=False)
        live = await create_quiz(client, teacher_headers, course.id, title='Live')

        listing = await client.get(f'/api/quizzes/course/{course.id}', headers=student_headers)
        direct = await client.get(f"/api/quizzes/{draft['id']}", headers=student_headers)

        assert [q['id'] for q in listing.json()['data']] == [live['id']]
        assert direct.status_code == 404

    @pytest.mark.asyncio
    async def test_teacher_sees_everything(self, client: AsyncClient, teacher_headers, course):
        await create_quiz(client, teacher_headers, course.id, title='Draft', is_published=False)
        await create_quiz(client, teacher_headers, course.id, title='Live')

        listing = await client.get(f'/api/quizzes/course/{course.id}', headers=teacher_headers)

        assert {q['title'] for q in listing.json()['data']} == {'Draft', 'Live'}


class TestAttempts:

    @pytest.mark.asyncio
    async def test_submit_scores_attempt(self, client: AsyncClient, teacher_headers, student_headers, course):
        quiz = await create_quiz(client, teacher_headers, course.id)

        response = await client.post(f"/api/quizzes/{quiz['id']}/submit", headers=student_headers,
                                     json={'answers': [1, 1]})

        assert response.status_code == 200
        data = response.json()['data']
        assert data['score'] == 5
        assert data['total'] == 10
        assert data['percentage'] == 50
        assert data['attempt_number'] == 1
        assert data['attempts_remaining'] == 0
        assert data['performance'] == 'Needs Improvement'
        assert data['submission']['correct_count'] == 1

    @pytest.mark.asyncio
    async def test_single_attempt_limit(self, client: AsyncClient, teacher_headers, student_headers, course):
        quiz = await create_quiz(client, teacher_headers, course.id)
        await client.post(f"/api/quizzes/{quiz['id']}/submit", headers=student_headers, json={'answers': [0, 0]})

        again = await client.post(f"/api/quizzes/{quiz['id']}/submit", headers=student_headers,
                                  json={'answers': [1, 0]})

        assert again.status_code == 400
        assert again.json()['message'] == 'Maximum attempts (1) reached for this quiz'
        assert again.json()['code'] == 'QUIZ_ATTEMPT_REJECTED'

    @pytest.mark.asyncio
    async def test_racing_duplicate_attempt(self, client: AsyncClient, teacher_headers, student_user,
                                            student_headers, db_session, course, monkeypatch):
        quiz = await create_quiz(client, teacher_headers, course.id)
        db_session.add(QuizSubmission(
            quiz_id=quiz['id'],
            course_id=course.id,
            student_id=student_user.id,
            answers=[],
            score=0.0,
            percentage=0.0,
            total_marks=10.0,
            attempt_number=1,
        ))
        await db_session.commit()

        async def nothing_recorded(self, quiz_id, student_id):
            return []

        monkeypatch.setattr(QuizService, 'student_attempts', nothing_recorded)
        response = await client.post(f"/api/quizzes/{quiz['id']}/submit", headers=student_headers,
                                     json={'answers': [1, 0]})
        count = await db_session.execute(
            select(func.count()).select_from(QuizSubmission).where(QuizSubmission.quiz_id == quiz['id'])
        )

        assert response.status_code == 400
        assert response.json()['code'] == 'DUPLICATE_SUBMISSION'
        assert count.scalar() == 1

    @pytest.mark.asyncio
    async def test_retake_until_passed(self, client: AsyncClient, teacher_headers, student_headers, course):
        quiz = await create_quiz(client, teacher_headers, course.id, max_attempts=3, allow_retake=True,
                                 days_between_attempts=0)
        url = f"/api/quizzes/{quiz['id']}/submit"

        first = await client.post(url, headers=student_headers, json={'answers': [0, 1]})
        second = await client.post(url, headers=student_headers, json={'answers': [1, 0]})
        third = await client.post(url, headers=student_headers, json={'answers': [1, 0]})

        assert first.json()['data']['percentage'] == 0
        assert second.json()['data']['attempt_number'] == 2
        assert third.status_code == 400
        assert third.json()['message'] == 'You already passed this quiz with 100.0% score'

    @pytest.mark.asyncio
    async def test_cooldown_between_attempts(self, client: AsyncClient, teacher_headers, student_headers, course):
        quiz = await create_quiz(client, teacher_headers, course.id, max_attempts=2, allow_retake=True)
        await client.post(f"/api/quizzes/{quiz['id']}/submit", headers=student_headers, json={'answers': [0, 1]})

        status = await client.get(f"/api/quizzes/{quiz['id']}/attempts-remaining", headers=student_headers)

        data = status.json()['data']
        assert data['attempts_used'] == 1
        assert data['attempts_remaining'] == 1
        assert data['can_attempt'] is False
        assert data['reason'].startswith('Please wait')
        assert data['retake_policy']['allow_retake'] is True

    @pytest.mark.asyncio
    async def test_wrong_answer_count(self, client: AsyncClient, teacher_headers, student_headers, course):
        quiz = await create_quiz(client, teacher_headers, course.id)

        response = await client.post(f"/api/quizzes/{quiz['id']}/submit", headers=student_headers,
                                     json={'answers': [1]})

        assert response.status_code == 400
        assert response.json()['message'] == 'Expected 2 answers, got 1'

    @pytest.mark.asyncio
    async def test_not_enrolled(self, client: AsyncClient, teacher_headers, make_user, headers_for, course):
        quiz = await create_quiz(client, teacher_headers, course.id)
        outsider = await make_user(UserRole.STUDENT)

        response = await client.post(f"/api/quizzes/{quiz['id']}/submit", headers=headers_for(outsider),
                                     json={'answers': [1, 0]})

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_unpublished_rejected(self, client: AsyncClient, teacher_headers, student_headers, course):
        quiz = await create_quiz(client, teacher_headers, course.id, is_published=False)

        response = await client.post(f"/api/quizzes/{quiz['id']}/submit", headers=student_headers,
                                     json={'answers': [1, 0]})

        assert response.status_code == 400
        assert response.json()['message'] == 'This quiz is not published'

    @pytest.mark.asyncio
    async def test_results_and_attempt_history(self, client: AsyncClient, teacher_headers, student_headers, course):
        quiz = await create_quiz(client, teacher_headers, course.id, max_attempts=2, allow_retake=True,
                                 days_between_attempts=0)

        before = await client.get(f"/api/quizzes/{quiz['id']}/my-result", headers=student_headers)
        assert before.json()['data'] is None

        url = f"/api/quizzes/{quiz['id']}/submit"
        await client.post(url, headers=student_headers, json={'answers': [0, 1]})
        await client.post(url, headers=student_headers, json={'answers': [1, 1]})

        result = await client.get(f"/api/quizzes/{quiz['id']}/my-result", headers=student_headers)
        history = await client.get(f"/api/quizzes/{quiz['id']}/my-attempts", headers=student_headers)

        assert result.json()['data']['submission']['attempt_number'] == 2
        assert result.json()['data']['attempts_used'] == 2
        assert [a['attempt_number'] for a in history.json()['data']['attempts']] == [1, 2]
        assert history.json()['data']['can_attempt'] is False


class TestTeacherReports:

    @pytest.mark.asyncio
    async def test_latest_attempt_per_student(self, client: AsyncClient, teacher_headers, student_user,
                                              student_headers, course):
        quiz = await create_quiz(client, teacher_headers, course.id, max_attempts=2, allow_retake=True,
                                 days_between_attempts=0)
        url = f"/api/quizzes/{quiz['id']}/submit"
        await client.post(url, headers=student_headers, json={'answers': [0, 1]})
        await client.post(url, headers=student_headers, json={'answers': [1, 1]})

        latest = await client.get(f"/api/quizzes/{quiz['id']}/submissions", headers=teacher_headers)
        attempts = await client.get(f"/api/quizzes/{quiz['id']}/students/{student_user.id}/attempts",
                                    headers=teacher_headers)

        assert [s['attempt_number'] for s in latest.json()['data']] == [2]
        assert len(attempts.json()['data']) == 2

    @pytest.mark.asyncio
    async def test_export_csv(self, client: AsyncClient, teacher_headers, student_user, student_headers, course):
        quiz = await create_quiz(client, teacher_headers, course.id, title='Unit 2: Fractions')
        await client.post(f"/api/quizzes/{quiz['id']}/submit", headers=student_headers, json={'answers': [1, 0]})

        response = await client.get(f"/api/quizzes/{quiz['id']}/export", headers=teacher_headers)

        assert response.status_code == 200
        assert response.headers['content-type'].startswith('text/csv')
        assert 'quiz-submissions-unit-2-fractions.csv' in response.headers['content-disposition']
        lines = response.text.strip().splitlines()
        assert lines[0].startswith('Student Name,Student ID,Email')
        assert student_user.email in lines[1]

    @pytest.mark.asyncio
    async def test_student_cannot_export(self, client: AsyncClient, teacher_headers, student_headers, course):
        quiz = await create_quiz(client, teacher_headers, course.id)

        response = await client.get(f"/api/quizzes/{quiz['id']}/export", headers=student_headers)

        assert response.status_code == 403
